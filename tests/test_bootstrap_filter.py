import numpy as np
import pytest

from bootstrap_filter import BootstrapFilter
from filter_errors import DegenerateWeightsError, EmptyBeliefError, InvalidArgumentError
from particle_belief import ParticleBelief
from probabilistic_model import ProbabilisticModel
from resampling import multinomial_resample


class ShiftModel(ProbabilisticModel):
    """Deterministic x + u transition with a pluggable likelihood."""

    state_dim = 1
    control_dim = 1
    observation_dim = 1

    def __init__(self, likelihood_fn):
        self.likelihood_fn = likelihood_fn

    def propagate(self, x, u, rng):
        return x + u

    def likelihood(self, x_prev, u, x_new, y):
        return self.likelihood_fn(x_new, y)

    def observe(self, x, rng):
        return x.copy()


def line_belief(n):
    return ParticleBelief(np.arange(float(n)).reshape(n, 1))


@pytest.mark.parametrize("n", [1, 2, 17, 1000])
def test_update_keeps_n_uniform_particles(model, rng, n):
    pf = BootstrapFilter(model, n)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    posterior = pf.update(belief, np.zeros(2), np.array([0.5, -0.5]), rng)

    assert len(posterior) == n
    np.testing.assert_allclose(posterior.weights(), 1.0 / n)
    assert posterior.weights().sum() == pytest.approx(1.0)
    assert posterior is not belief


def test_update_does_not_touch_prior(model, rng):
    pf = BootstrapFilter(model, 100)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    before = belief.particles().copy()
    pf.update(belief, np.ones(2), np.zeros(2), rng)
    np.testing.assert_array_equal(belief.particles(), before)


def test_constant_likelihood_samples_uniformly(rng):
    n = 10
    pf = BootstrapFilter(ShiftModel(lambda x, y: 1.0), n, resample_fn=multinomial_resample)
    belief = line_belief(n)

    counts = np.zeros(n)
    for _ in range(2000):
        posterior = pf.update(belief, np.array([0.0]), np.array([0.0]), rng)
        counts += np.bincount(posterior.particles()[:, 0].astype(int), minlength=n)

    frequencies = counts / counts.sum()
    np.testing.assert_allclose(frequencies, 1.0 / n, atol=0.01)


def test_constant_likelihood_with_systematic_keeps_every_proposal(rng):
    n = 10
    pf = BootstrapFilter(ShiftModel(lambda x, y: 1.0), n)
    posterior = pf.update(line_belief(n), np.array([1.0]), np.array([0.0]), rng)
    np.testing.assert_array_equal(np.sort(posterior.particles()[:, 0]), np.arange(1.0, n + 1.0))


@pytest.mark.parametrize("resampler", ["multinomial", "systematic", "stratified", "residual"])
def test_single_supported_proposal_is_copied(rng, resampler):
    n = 25
    pf = BootstrapFilter(ShiftModel(lambda x, y: float(x[0] == y[0])), n, resampler)
    posterior = pf.update(line_belief(n), np.array([0.0]), np.array([7.0]), rng)
    np.testing.assert_array_equal(posterior.particles(), np.full((n, 1), 7.0))


def test_all_zero_weights_raise(rng):
    pf = BootstrapFilter(ShiftModel(lambda x, y: 0.0), 5)
    with pytest.raises(DegenerateWeightsError) as info:
        pf.update(line_belief(5), np.array([0.0]), np.array([0.0]), rng)
    np.testing.assert_array_equal(info.value.weights, np.zeros(5))


@pytest.mark.parametrize("bad", [np.nan, np.inf, -1.0])
def test_non_finite_or_negative_weights_raise(rng, bad):
    pf = BootstrapFilter(ShiftModel(lambda x, y: bad if x[0] == 0.0 else 1.0), 5)
    with pytest.raises(DegenerateWeightsError):
        pf.update(line_belief(5), np.array([0.0]), np.array([0.0]), rng)


def test_same_seed_gives_identical_posteriors(model):
    pf = BootstrapFilter(model, 500)
    results = []
    for _ in range(2):
        rng = np.random.default_rng(42)
        belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
        for _ in range(5):
            belief = pf.update(belief, np.array([0.1, -0.1]), np.array([0.0, 1.0]), rng)
        results.append(belief.particles())
    np.testing.assert_array_equal(results[0], results[1])


def test_posterior_moves_towards_observation(model, rng):
    pf = BootstrapFilter(model, 2000)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    y = np.array([1.5, -1.5])
    for _ in range(5):
        belief = pf.update(belief, np.zeros(2), y, rng)
    assert np.linalg.norm(belief.mean()[:2] - y) < 1.0


def test_predict_keeps_weights(rng):
    pf = BootstrapFilter(ShiftModel(lambda x, y: 1.0), 2)
    belief = ParticleBelief(np.array([[0.0], [1.0]]), weights=[0.25, 0.75])
    predicted = pf.predict(belief, np.array([2.0]), rng)
    np.testing.assert_allclose(predicted.particles(), [[2.0], [3.0]])
    np.testing.assert_allclose(predicted.weights(), [0.25, 0.75])


def test_reweight_then_resample_matches_update(model):
    pf = BootstrapFilter(model, 300)
    u, y = np.array([0.2, 0.0]), np.array([0.5, 0.5])

    rng = np.random.default_rng(5)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    predicted = pf.predict(belief, u, rng)
    weighted = pf.reweight(belief, u, y, predicted)
    assert not weighted.is_uniform()
    stepwise = pf.resample(weighted, rng)

    rng = np.random.default_rng(5)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    direct = pf.update(belief, u, y, rng)

    np.testing.assert_array_equal(stepwise.particles(), direct.particles())


def test_run_returns_belief_per_step(model, rng):
    pf = BootstrapFilter(model, 100)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)
    controls = [np.zeros(2)] * 4
    observations = [np.array([0.0, float(k)]) for k in range(4)]
    beliefs = pf.run(belief, controls, observations, rng)
    assert len(beliefs) == 4
    assert all(len(b) == 100 for b in beliefs)

    with pytest.raises(InvalidArgumentError):
        pf.run(belief, controls, observations[:2], rng)


def test_precondition_failures(model, rng):
    pf = BootstrapFilter(model, 10)
    belief = pf.initialize_belief([-2.0] * 4, [2.0] * 4, rng)

    with pytest.raises(InvalidArgumentError):
        pf.update(belief, np.zeros(3), np.zeros(2), rng)
    with pytest.raises(InvalidArgumentError):
        pf.update(belief, np.zeros(2), np.zeros(4), rng)
    with pytest.raises(InvalidArgumentError):
        pf.update(ParticleBelief(np.zeros((5, 4))), np.zeros(2), np.zeros(2), rng)
    with pytest.raises(InvalidArgumentError):
        pf.update(ParticleBelief(np.zeros((10, 3))), np.zeros(2), np.zeros(2), rng)
    with pytest.raises(EmptyBeliefError):
        pf.update(ParticleBelief.from_pairs([]), np.zeros(2), np.zeros(2), rng)
    with pytest.raises(EmptyBeliefError):
        pf.resample(ParticleBelief.from_pairs([]), rng)


def test_constructor_validation(model):
    with pytest.raises(InvalidArgumentError):
        BootstrapFilter(model, 0)
    with pytest.raises(InvalidArgumentError):
        BootstrapFilter(model, 10, "bogus")
