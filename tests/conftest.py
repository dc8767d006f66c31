import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from probabilistic_model import double_integrator_model


@pytest.fixture
def rng():
    return np.random.default_rng(2018)


@pytest.fixture
def model():
    return double_integrator_model(dt=0.1, process_noise=0.01, observation_noise=1.0)
