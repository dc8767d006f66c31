"""
Bootstrap particle filter (sequential importance resampling).

Each update runs:
1. Propagate: push every particle through the transition model
2. Weight: score each proposal with the observation likelihood
3. Degeneracy check: refuse to continue if no proposal explains the observation
4. Resample: draw N particles in proportion to weight, reset weights to 1/N

The filter holds no state besides its configuration. Beliefs go in and new
beliefs come out; the random generator is always passed in by the caller.
"""

import logging

import numpy as np

from filter_errors import DegenerateWeightsError, EmptyBeliefError, InvalidArgumentError
from particle_belief import ParticleBelief
from probabilistic_model import as_vector
from resampling import RESAMPLERS, systematic_resample

logger = logging.getLogger(__name__)


class BootstrapFilter:
    def __init__(self, model, n_particles, resample_fn=None):
        if n_particles < 1:
            raise InvalidArgumentError(f"n_particles must be at least 1, got {n_particles}")
        if isinstance(resample_fn, str):
            if resample_fn not in RESAMPLERS:
                raise InvalidArgumentError(f"unknown resampler {resample_fn!r}")
            resample_fn = RESAMPLERS[resample_fn]

        self.model = model
        self.n_particles = n_particles
        self.resample_fn = resample_fn or systematic_resample

    def check_belief(self, belief):
        """Raise unless `belief` has N particles of the model's state dimension."""
        if len(belief) == 0:
            raise EmptyBeliefError("belief has no particles")
        if len(belief) != self.n_particles:
            raise InvalidArgumentError(
                f"belief has {len(belief)} particles, filter expects {self.n_particles}"
            )
        if belief.dim != self.model.state_dim:
            raise InvalidArgumentError(
                f"belief states have dimension {belief.dim}, model expects {self.model.state_dim}"
            )

    def initialize_belief(self, low, high, rng):
        """Initialize particles uniformly in the box [low, high]."""
        low = as_vector(low, self.model.state_dim, "low")
        high = as_vector(high, self.model.state_dim, "high")
        return ParticleBelief.uniform(self.n_particles, low, high, rng)

    def predict(self, belief, u, rng):
        """Propagate particles through the motion model, keeping their weights."""
        self.check_belief(belief)
        u = as_vector(u, self.model.control_dim, "control")
        proposals = self.model.propagate_particles(belief.particles(), u, rng)
        return ParticleBelief(proposals, belief.weights())

    def compute_weights(self, prev_states, u, proposals, y):
        """Unnormalised importance weights, checked for degeneracy."""
        weights = np.asarray(
            self.model.particle_likelihoods(prev_states, u, proposals, y), dtype=float
        )
        if weights.shape != (len(proposals),):
            raise InvalidArgumentError(
                f"model returned {weights.shape} weights for {len(proposals)} proposals"
            )

        total = np.sum(weights)
        if np.any(np.isnan(weights)) or np.any(weights < 0) or not np.isfinite(total) or total <= 0:
            raise DegenerateWeightsError(
                "no proposed particle explains the observation", weights=weights
            )
        return weights

    def reweight(self, belief, u, y, predicted):
        """Weight `predicted` (propagated from `belief`) against observation `y`."""
        self.check_belief(belief)
        self.check_belief(predicted)
        u = as_vector(u, self.model.control_dim, "control")
        y = as_vector(y, self.model.observation_dim, "observation")

        weights = self.compute_weights(belief.particles(), u, predicted.particles(), y)
        return ParticleBelief(predicted.particles(), predicted.weights() * weights)

    def resample(self, belief, rng):
        """Resample particles based on weights."""
        if len(belief) == 0:
            raise EmptyBeliefError("cannot resample an empty belief")
        indices = self.resample_fn(belief.weights(), rng)
        return ParticleBelief(belief.particles()[indices])

    def update(self, belief, u, y, rng):
        """Posterior belief after applying control `u` and observing `y`."""
        predicted = self.predict(belief, u, rng)
        weighted = self.reweight(belief, u, y, predicted)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "update: n_eff=%.3f entropy=%.3f",
                weighted.effective_sample_size(),
                weighted.weight_entropy(),
            )

        return self.resample(weighted, rng)

    def run(self, belief, controls, observations, rng):
        """Filter a whole sequence, returning the posterior after every step."""
        controls = list(controls)
        observations = list(observations)
        if len(controls) != len(observations):
            raise InvalidArgumentError(
                f"got {len(controls)} controls but {len(observations)} observations"
            )

        beliefs = []
        for u, y in zip(controls, observations):
            belief = self.update(belief, u, y, rng)
            beliefs.append(belief)
        return beliefs
