"""
Closed-loop simulation: estimate the state with a particle filter and feed the
estimate back through a linear control law.

Each iteration:
1. u = K @ mean(belief)
2. Advance the hidden true state with the true dynamics
3. Generate a noisy observation of the new true state
4. Update the belief with (u, y)
"""

import logging
from dataclasses import dataclass

import numpy as np

from filter_errors import DegenerateWeightsError, InvalidArgumentError
from particle_belief import ParticleBelief
from probabilistic_model import as_vector

logger = logging.getLogger(__name__)

DEGENERATE_POLICIES = ("raise", "reinitialize")


@dataclass(frozen=True)
class StepRecord:
    index: int
    control: np.ndarray
    true_state: np.ndarray
    observation: np.ndarray
    belief: ParticleBelief
    reinitialized: bool = False


class ControlLoop:
    """Owns the true state and the belief across iterations.

    Args:
        bootstrap_filter: the estimator; its model is used for the true
            dynamics unless `true_model` is given
        gain: (M, D) feedback gain matrix
        initial_state: true starting state (hidden from the filter)
        belief: starting belief
        rng: numpy Generator shared by the simulation and the filter
        true_model: optional twin model used to simulate the real system
        on_degenerate: "raise" to propagate DegenerateWeightsError, or
            "reinitialize" to rebuild the belief inside `init_box`
        init_box: (low, high) bounds used when reinitializing
    """

    def __init__(self, bootstrap_filter, gain, initial_state, belief, rng,
                 true_model=None, on_degenerate="raise", init_box=None):
        self.filter = bootstrap_filter
        self.true_model = true_model or bootstrap_filter.model
        self.rng = rng

        model = self.filter.model
        self.gain = np.asarray(gain, dtype=float)
        if self.gain.shape != (model.control_dim, model.state_dim):
            raise InvalidArgumentError(
                f"gain must have shape {(model.control_dim, model.state_dim)}, "
                f"got {self.gain.shape}"
            )

        if on_degenerate not in DEGENERATE_POLICIES:
            raise InvalidArgumentError(f"unknown degenerate-weights policy {on_degenerate!r}")
        if on_degenerate == "reinitialize" and init_box is None:
            raise InvalidArgumentError("reinitialize policy needs an init_box")
        self.on_degenerate = on_degenerate
        self.init_box = init_box

        self.reset(initial_state, belief)

    def reset(self, initial_state, belief):
        """Restart the run from a new true state and belief."""
        self.filter.check_belief(belief)
        self.state = as_vector(initial_state, self.true_model.state_dim, "initial state")
        self.belief = belief
        self.iteration = 0
        self._stopped = False

    def stop(self):
        """Stop issuing iterations; takes effect before the next step."""
        self._stopped = True

    @property
    def stopped(self):
        return self._stopped

    def control(self):
        """Control for the current belief."""
        return self.gain @ self.belief.mean()

    def _reinitialize(self, u, y):
        low, high = self.init_box
        fresh = self.filter.initialize_belief(low, high, self.rng)
        # Weight the fresh particles against the observation directly
        weighted = self.filter.reweight(fresh, u, y, fresh)
        return self.filter.resample(weighted, self.rng)

    def step(self):
        """Run one control/estimation iteration.

        The true state advances before the filter update, so a failed update
        still counts as an iteration. Under the "raise" policy the error
        carries the step index, control and observation, and the belief is
        left as it was.
        """
        u = self.control()
        self.state = self.true_model.propagate(self.state, u, self.rng)
        y = self.true_model.observe(self.state, self.rng)
        index = self.iteration
        self.iteration += 1

        reinitialized = False
        try:
            self.belief = self.filter.update(self.belief, u, y, self.rng)
        except DegenerateWeightsError as error:
            if self.on_degenerate == "raise":
                logger.warning("degenerate weights at step %d", index)
                error.step = index
                error.control = u
                error.observation = y
                raise
            logger.warning("degenerate weights at step %d, reinitializing belief", index)
            self.belief = self._reinitialize(u, y)
            reinitialized = True

        record = StepRecord(
            index=index,
            control=u,
            true_state=self.state.copy(),
            observation=y,
            belief=self.belief,
            reinitialized=reinitialized,
        )

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "step %d: u=%s x=%s mean=%s",
                index, u, record.true_state, self.belief.mean(),
            )
        return record

    def run(self, n_steps, callback=None):
        """Iterate `n_steps` times or until `stop()` is called."""
        if n_steps < 0:
            raise InvalidArgumentError(f"n_steps must be non-negative, got {n_steps}")

        history = []
        for _ in range(n_steps):
            if self._stopped:
                logger.info("control loop stopped after %d steps", len(history))
                break
            record = self.step()
            history.append(record)
            if callback is not None:
                callback(record)
        return history
