import numpy as np
import pytest

from filter_errors import InvalidArgumentError
from probabilistic_model import LinearGaussianModel, ProbabilisticModel, double_integrator_model


def test_double_integrator_matrices(model):
    assert model.state_dim == 4
    assert model.control_dim == 2
    assert model.observation_dim == 2
    np.testing.assert_allclose(model.A[0, 2], 0.1)
    np.testing.assert_allclose(model.A[1, 3], 0.1)
    np.testing.assert_allclose(model.B[2:], 0.1 * np.eye(2))
    np.testing.assert_allclose(model.W, 0.01 * np.eye(4))
    np.testing.assert_allclose(model.V, np.eye(2))


def test_propagate_is_reproducible(model):
    x = np.array([0.0, 1.0, 1.0, 0.0])
    u = np.array([0.5, -0.5])
    a = model.propagate(x, u, np.random.default_rng(7))
    b = model.propagate(x, u, np.random.default_rng(7))
    np.testing.assert_array_equal(a, b)
    assert a.shape == (4,)


def test_propagate_mean_follows_dynamics(model, rng):
    x = np.array([0.0, 1.0, 1.0, 0.0])
    u = np.array([1.0, 0.0])
    samples = np.array([model.propagate(x, u, rng) for _ in range(4000)])
    np.testing.assert_allclose(samples.mean(axis=0), model.mean_transition(x, u), atol=0.01)


def test_likelihood_peaks_at_observation(model):
    y = np.array([0.3, -0.2])
    on_target = model.likelihood(None, None, np.array([0.3, -0.2, 5.0, 5.0]), y)
    off_target = model.likelihood(None, None, np.array([2.3, -0.2, 0.0, 0.0]), y)
    assert on_target == pytest.approx(1.0 / (2.0 * np.pi))
    assert 0.0 < off_target < on_target


def test_batched_likelihood_matches_single(model, rng):
    states = rng.normal(size=(5, 4))
    y = np.array([0.1, 0.2])
    u = np.zeros(2)
    batched = model.particle_likelihoods(states, u, states, y)
    single = [model.likelihood(s, u, s, y) for s in states]
    np.testing.assert_allclose(batched, single)


def test_batched_propagate_shape(model, rng):
    states = np.zeros((10, 4))
    out = model.propagate_particles(states, np.zeros(2), rng)
    assert out.shape == (10, 4)


def test_observe_has_observation_dimension(model, rng):
    y = model.observe(np.zeros(4), rng)
    assert y.shape == (2,)


@pytest.mark.parametrize("x, u", [
    (np.zeros(3), np.zeros(2)),
    (np.zeros(4), np.zeros(3)),
    (np.zeros((4, 1)), np.zeros(2)),
])
def test_dimension_mismatch_is_invalid_argument(model, rng, x, u):
    with pytest.raises(InvalidArgumentError):
        model.propagate(x, u, rng)


def test_wrong_observation_dimension(model):
    with pytest.raises(InvalidArgumentError):
        model.likelihood(None, None, np.zeros(4), np.zeros(3))


def test_constructor_checks_shapes():
    with pytest.raises(InvalidArgumentError):
        LinearGaussianModel(np.eye(4), np.zeros((3, 2)), np.eye(2, 4), np.eye(4), np.eye(2))
    with pytest.raises(InvalidArgumentError):
        LinearGaussianModel(np.eye(4), np.zeros((4, 2)), np.eye(2, 4), np.eye(3), np.eye(2))
    with pytest.raises(InvalidArgumentError):
        double_integrator_model(dt=0.0)


class RandomWalk(ProbabilisticModel):
    """Scalar model that only implements the single-state methods."""

    state_dim = 1
    control_dim = 1
    observation_dim = 1

    def propagate(self, x, u, rng):
        return x + u + rng.normal(size=1)

    def likelihood(self, x_prev, u, x_new, y):
        return float(np.exp(-0.5 * (y[0] - x_new[0]) ** 2))

    def observe(self, x, rng):
        return x + rng.normal(size=1)


def test_default_batching_loops_over_particles():
    model = RandomWalk()
    states = np.arange(3.0).reshape(3, 1)
    out = model.propagate_particles(states, np.array([1.0]), np.random.default_rng(0))
    assert out.shape == (3, 1)

    weights = model.particle_likelihoods(states, np.array([1.0]), states, np.array([1.0]))
    np.testing.assert_allclose(weights, np.exp(-0.5 * (1.0 - states[:, 0]) ** 2))
