"""
Weighted particle set approximating a posterior distribution over the state.
"""

import numpy as np

from filter_errors import DegenerateWeightsError, EmptyBeliefError, InvalidArgumentError


def _read_only(array):
    array = np.array(array, dtype=float)
    array.setflags(write=False)
    return array


class ParticleBelief:
    """Immutable collection of N weighted state samples.

    Built from an (N, D) array of states and optionally N non-negative
    weights. Missing weights mean a uniform (unweighted) empirical
    distribution. Weights are normalised on construction.
    """

    def __init__(self, states, weights=None):
        states = np.asarray(states, dtype=float)
        if states.ndim == 1 and states.size == 0:
            states = states.reshape(0, 0)
        if states.ndim != 2:
            raise InvalidArgumentError(
                f"states must be an (N, D) array, got shape {states.shape}"
            )
        n = states.shape[0]

        if weights is None:
            weights = np.full(n, 1.0 / n) if n > 0 else np.zeros(0)
        else:
            weights = np.asarray(weights, dtype=float)
            if weights.shape != (n,):
                raise InvalidArgumentError(
                    f"expected {n} weights, got shape {weights.shape}"
                )
            if not np.all(np.isfinite(weights)) or np.any(weights < 0):
                raise InvalidArgumentError("weights must be finite and non-negative")
            if n > 0:
                total = weights.sum()
                if total <= 0:
                    raise DegenerateWeightsError("weights sum to zero", weights=weights)
                weights = weights / total

        self._states = _read_only(states)
        self._weights = _read_only(weights)

    @classmethod
    def from_pairs(cls, pairs):
        """Build a belief from an ordered sequence of (state, weight) pairs."""
        pairs = list(pairs)
        if not pairs:
            return cls(np.zeros((0, 0)))
        try:
            states, weights = zip(*pairs)
            states = np.array(states, dtype=float)
            weights = np.array(weights, dtype=float)
        except ValueError as exc:
            raise InvalidArgumentError(f"malformed (state, weight) pairs: {exc}") from exc
        return cls(states, weights)

    @classmethod
    def uniform(cls, n_particles, low, high, rng):
        """N particles drawn uniformly from the box [low, high]."""
        low = np.asarray(low, dtype=float)
        high = np.asarray(high, dtype=float)
        if low.shape != high.shape or low.ndim != 1:
            raise InvalidArgumentError("low and high must be vectors of equal length")
        if np.any(high < low):
            raise InvalidArgumentError("high must be >= low in every dimension")
        states = rng.uniform(low=low, high=high, size=(n_particles, low.shape[0]))
        return cls(states)

    def __len__(self):
        return self._states.shape[0]

    def __repr__(self):
        return f"ParticleBelief(n_particles={len(self)}, dim={self.dim})"

    @property
    def n_particles(self):
        return self._states.shape[0]

    @property
    def dim(self):
        return self._states.shape[1]

    def particles(self):
        """Read-only (N, D) view of the particle states."""
        return self._states

    def weights(self):
        """Read-only (N,) view of the normalised weights."""
        return self._weights

    def is_uniform(self):
        return len(self) == 0 or np.allclose(self._weights, 1.0 / len(self))

    def _require_particles(self, operation):
        if len(self) == 0:
            raise EmptyBeliefError(f"cannot compute {operation} of an empty belief")

    def mean(self):
        """Weighted average of the particle states."""
        self._require_particles("mean")
        return np.average(self._states, weights=self._weights, axis=0)

    def covariance(self):
        """Weighted covariance of the particle states."""
        self._require_particles("covariance")
        diff = self._states - self.mean()
        return (diff.T * self._weights) @ diff

    def variance(self):
        return np.diag(self.covariance()).copy()

    def map_state(self):
        """State of the highest-weight particle."""
        self._require_particles("map state")
        return self._states[np.argmax(self._weights)].copy()

    def effective_sample_size(self):
        """Normalised effective sample size, in (0, 1]."""
        self._require_particles("effective sample size")
        return float((1.0 / np.sum(self._weights**2)) / len(self))

    def weight_entropy(self):
        """Entropy of the weight distribution in nats."""
        w = self._weights[self._weights > 0]
        return float(-np.sum(w * np.log(w)))
