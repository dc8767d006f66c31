"""
Probabilistic models for the bootstrap particle filter.

A model supplies two things:
1. Transition sampler: draws the next state given the current state and control
2. Observation likelihood: how well a hypothesised state explains an observation

The filter only talks to models through `propagate_particles` and
`particle_likelihoods`. The base class implements both by looping over the
single-state methods, so a new model only has to define `propagate`,
`likelihood` and `observe`.
"""

import numpy as np
from scipy.stats import multivariate_normal

from filter_errors import InvalidArgumentError


def as_vector(value, dim, name):
    """Convert `value` to a float vector of length `dim` or raise."""
    vector = np.asarray(value, dtype=float)
    if vector.ndim != 1 or vector.shape[0] != dim:
        raise InvalidArgumentError(
            f"{name} must be a vector of length {dim}, got shape {vector.shape}"
        )
    return vector


def as_particles(value, dim, name="states"):
    """Convert `value` to an (N, dim) float array or raise."""
    states = np.asarray(value, dtype=float)
    if states.ndim != 2 or states.shape[1] != dim:
        raise InvalidArgumentError(
            f"{name} must have shape (N, {dim}), got {states.shape}"
        )
    return states


def as_matrix(value, shape, name):
    matrix = np.asarray(value, dtype=float)
    if matrix.shape != shape:
        raise InvalidArgumentError(
            f"{name} must have shape {shape}, got {matrix.shape}"
        )
    return matrix


class ProbabilisticModel:
    """Transition sampler plus observation likelihood."""

    state_dim = None
    control_dim = None
    observation_dim = None

    def propagate(self, x, u, rng):
        """Draw one successor state of `x` under control `u`."""
        raise NotImplementedError

    def likelihood(self, x_prev, u, x_new, y):
        """Relative density of observing `y` from `x_new`."""
        raise NotImplementedError

    def observe(self, x, rng):
        """Draw one observation of state `x`."""
        raise NotImplementedError

    def propagate_particles(self, states, u, rng):
        """Propagate every row of `states`, consuming `rng` in row order."""
        states = as_particles(states, self.state_dim)
        return np.array(
            [self.propagate(x, u, rng) for x in states], dtype=float
        ).reshape(states.shape[0], self.state_dim)

    def particle_likelihoods(self, prev_states, u, new_states, y):
        """Unnormalised importance weight for every proposal."""
        prev_states = as_particles(prev_states, self.state_dim, "prev_states")
        new_states = as_particles(new_states, self.state_dim, "new_states")
        return np.array(
            [self.likelihood(xp, u, xn, y) for xp, xn in zip(prev_states, new_states)],
            dtype=float,
        )


class LinearGaussianModel(ProbabilisticModel):
    """Linear dynamics with additive Gaussian process and observation noise.

        x' = A x + B u + w,    w ~ N(0, W)
        y  = C x + v,          v ~ N(0, V)

    The likelihood only looks at the new state and the observation; the
    previous state and control are accepted to satisfy the model interface.
    """

    def __init__(self, A, B, C, W, V):
        A = np.asarray(A, dtype=float)
        if A.ndim != 2 or A.shape[0] != A.shape[1]:
            raise InvalidArgumentError(f"A must be square, got shape {A.shape}")
        n = A.shape[0]

        B = np.asarray(B, dtype=float)
        if B.ndim != 2 or B.shape[0] != n:
            raise InvalidArgumentError(f"B must have {n} rows, got shape {B.shape}")
        m = B.shape[1]

        C = np.asarray(C, dtype=float)
        if C.ndim != 2 or C.shape[1] != n:
            raise InvalidArgumentError(f"C must have {n} columns, got shape {C.shape}")
        p = C.shape[0]

        self.A = A
        self.B = B
        self.C = C
        self.W = as_matrix(W, (n, n), "W")
        self.V = as_matrix(V, (p, p), "V")

        self.state_dim = n
        self.control_dim = m
        self.observation_dim = p

        try:
            self._observation_noise = multivariate_normal(mean=np.zeros(p), cov=self.V)
        except (ValueError, np.linalg.LinAlgError) as exc:
            raise InvalidArgumentError(f"V is not a valid covariance: {exc}") from exc

    def mean_transition(self, x, u):
        """Noise-free successor A x + B u."""
        x = as_vector(x, self.state_dim, "state")
        u = as_vector(u, self.control_dim, "control")
        return self.A @ x + self.B @ u

    def propagate(self, x, u, rng):
        w = rng.multivariate_normal(np.zeros(self.state_dim), self.W)
        return self.mean_transition(x, u) + w

    def observe(self, x, rng):
        x = as_vector(x, self.state_dim, "state")
        v = rng.multivariate_normal(np.zeros(self.observation_dim), self.V)
        return self.C @ x + v

    def likelihood(self, x_prev, u, x_new, y):
        x_new = as_vector(x_new, self.state_dim, "new state")
        y = as_vector(y, self.observation_dim, "observation")
        return float(self._observation_noise.pdf(y - self.C @ x_new))

    def propagate_particles(self, states, u, rng):
        states = as_particles(states, self.state_dim)
        u = as_vector(u, self.control_dim, "control")
        # One (N, D) draw keeps the rng stream independent of Python loop order
        noise = rng.multivariate_normal(
            np.zeros(self.state_dim), self.W, size=states.shape[0]
        )
        return states @ self.A.T + self.B @ u + noise

    def particle_likelihoods(self, prev_states, u, new_states, y):
        new_states = as_particles(new_states, self.state_dim, "new_states")
        y = as_vector(y, self.observation_dim, "observation")
        if new_states.shape[0] == 0:
            return np.zeros(0)
        residuals = y - new_states @ self.C.T
        return np.atleast_1d(self._observation_noise.pdf(residuals)).astype(float)


def double_integrator_model(dt=0.1, process_noise=0.01, observation_noise=1.0):
    """Planar point mass: state [px, py, vx, vy], control is acceleration.

    Only the position is observed.
    """
    if dt <= 0:
        raise InvalidArgumentError(f"dt must be positive, got {dt}")

    A = np.array([
        [1.0, 0.0, dt, 0.0],
        [0.0, 1.0, 0.0, dt],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ])
    B = np.array([
        [0.5 * dt**2, 0.0],
        [0.0, 0.5 * dt**2],
        [dt, 0.0],
        [0.0, dt],
    ])
    C = np.array([
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, 0.0],
    ])
    W = process_noise * np.eye(4)
    V = observation_noise * np.eye(2)

    return LinearGaussianModel(A, B, C, W, V)
