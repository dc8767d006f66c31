"""
Resampling schemes for the bootstrap particle filter.

Every scheme maps a normalised weight vector of length N to N particle
indices drawn in proportion to the weights. Randomness comes only from the
generator passed in, so results are reproducible from a seed.

The systematic, stratified and residual schemes follow the formulations in
Roger Labbe's "Kalman and Bayesian Filters in Python", chapter 12.
"""

import numpy as np

from filter_errors import EmptyBeliefError


def _cumulative(weights):
    cumsum = np.cumsum(weights)
    # Guard against round-off leaving the last bin just below 1
    cumsum[-1] = 1.0
    return cumsum


def _check(weights):
    weights = np.asarray(weights, dtype=float)
    if weights.size == 0:
        raise EmptyBeliefError("cannot resample an empty weight vector")
    return weights


def multinomial_resample(weights, rng):
    """N independent categorical draws."""
    weights = _check(weights)
    n = len(weights)
    return np.searchsorted(_cumulative(weights), rng.uniform(0, 1, n), side="right")


def systematic_resample(weights, rng):
    """Low-variance resampling: one random offset, N evenly spaced pointers."""
    weights = _check(weights)
    n = len(weights)
    positions = (np.arange(n) + rng.uniform(0, 1)) / n
    return np.searchsorted(_cumulative(weights), positions, side="right")


def stratified_resample(weights, rng):
    """One uniform draw inside each of N equal strata."""
    weights = _check(weights)
    n = len(weights)
    positions = (rng.uniform(0, 1, n) + np.arange(n)) / n
    return np.searchsorted(_cumulative(weights), positions, side="right")


def residual_resample(weights, rng):
    """Deterministic floor(N*w) copies, multinomial draws for the remainder."""
    weights = _check(weights)
    n = len(weights)

    # take int(N*w) copies of each weight
    num_copies = np.floor(n * weights).astype(int)
    indices = np.repeat(np.arange(n), num_copies)

    k = len(indices)
    if k == n:
        return indices

    # fill up the rest from the fractional parts
    residual = n * weights - num_copies
    residual /= residual.sum()
    extra = np.searchsorted(_cumulative(residual), rng.uniform(0, 1, n - k), side="right")
    return np.concatenate([indices, extra])


RESAMPLERS = {
    "multinomial": multinomial_resample,
    "systematic": systematic_resample,
    "stratified": stratified_resample,
    "residual": residual_resample,
}
