"""
Construction-time configuration for the closed-loop simulation.

Settings can be loaded from a TOML file, e.g.

    n_particles = 1000
    n_steps = 100
    gain = [[-1.0, 0.0, 0.0, 0.0], [0.0, -1.0, 0.0, 0.0]]

Missing keys fall back to the defaults below, which reproduce the reference
scenario (planar double integrator, position feedback).
"""

from dataclasses import asdict, dataclass, field, fields
from typing import List, Optional

import numpy as np
import toml

from bootstrap_filter import BootstrapFilter
from control_loop import DEGENERATE_POLICIES
from filter_errors import InvalidArgumentError
from probabilistic_model import double_integrator_model
from resampling import RESAMPLERS

STATE_DIM = 4
CONTROL_DIM = 2


@dataclass
class SimulationConfig:
    dt: float = 0.1
    process_noise: float = 0.01
    observation_noise: float = 1.0
    # u = -position: the point mass orbits the origin
    gain: List[List[float]] = field(default_factory=lambda: [
        [-1.0, 0.0, 0.0, 0.0],
        [0.0, -1.0, 0.0, 0.0],
    ])
    n_particles: int = 1000
    n_steps: int = 100
    initial_state: List[float] = field(default_factory=lambda: [0.0, 1.0, 1.0, 0.0])
    init_low: List[float] = field(default_factory=lambda: [-2.0] * STATE_DIM)
    init_high: List[float] = field(default_factory=lambda: [2.0] * STATE_DIM)
    seed: Optional[int] = 0
    resampler: str = "systematic"
    on_degenerate: str = "raise"
    fps: int = 10
    output: str = "closed_loop.gif"

    @staticmethod
    def from_dict(d: dict) -> "SimulationConfig":
        known = {f.name for f in fields(SimulationConfig)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise InvalidArgumentError(f"unknown configuration keys: {', '.join(unknown)}")
        config = SimulationConfig(**d)
        config.validate()
        return config

    def to_dict(self) -> dict:
        return asdict(self)

    def validate(self) -> None:
        for name in ("n_particles", "n_steps", "fps"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise InvalidArgumentError(f"seed must be an integer or None, got {self.seed!r}")
        if self.dt <= 0:
            raise InvalidArgumentError("dt must be positive")
        if self.process_noise < 0 or self.observation_noise <= 0:
            raise InvalidArgumentError(
                "process_noise must be non-negative and observation_noise positive"
            )
        if self.n_particles < 1:
            raise InvalidArgumentError("n_particles must be at least 1")
        if self.n_steps < 0:
            raise InvalidArgumentError("n_steps must be non-negative")
        if self.fps < 1:
            raise InvalidArgumentError("fps must be at least 1")
        if self.resampler not in RESAMPLERS:
            raise InvalidArgumentError(
                f"resampler must be one of {sorted(RESAMPLERS)}, got {self.resampler!r}"
            )
        if self.on_degenerate not in DEGENERATE_POLICIES:
            raise InvalidArgumentError(
                f"on_degenerate must be one of {DEGENERATE_POLICIES}, got {self.on_degenerate!r}"
            )
        if np.shape(self.gain) != (CONTROL_DIM, STATE_DIM):
            raise InvalidArgumentError(
                f"gain must be {CONTROL_DIM}x{STATE_DIM}, got shape {np.shape(self.gain)}"
            )
        for name in ("initial_state", "init_low", "init_high"):
            if np.shape(getattr(self, name)) != (STATE_DIM,):
                raise InvalidArgumentError(f"{name} must have {STATE_DIM} entries")
        if np.any(np.asarray(self.init_high) < np.asarray(self.init_low)):
            raise InvalidArgumentError("init_high must be >= init_low")

    def build_model(self):
        return double_integrator_model(self.dt, self.process_noise, self.observation_noise)

    def build_filter(self, model=None):
        return BootstrapFilter(model or self.build_model(), self.n_particles, self.resampler)

    def build_gain(self):
        return np.array(self.gain, dtype=float)

    def init_box(self):
        return np.array(self.init_low, dtype=float), np.array(self.init_high, dtype=float)


def load_config(path) -> SimulationConfig:
    """Read a TOML file into a validated SimulationConfig."""
    return SimulationConfig.from_dict(toml.load(str(path)))
