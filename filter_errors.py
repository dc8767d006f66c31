"""
Exceptions raised by the particle filter and the closed-loop simulation.
"""


class FilterError(Exception):
    """Base class for all particle filter errors."""


class InvalidArgumentError(FilterError, ValueError):
    """A vector or matrix does not match the configured dimensions."""


class EmptyBeliefError(FilterError, ValueError):
    """An operation needs at least one particle but the belief is empty."""


class DegenerateWeightsError(FilterError):
    """No proposed particle explains the observation.

    Raised when every importance weight is zero, or the weights do not sum to
    a finite positive number. The raw weights are kept so the caller can
    decide how to recover. When raised from a control loop step, `step`,
    `control` and `observation` identify the iteration that failed.
    """

    def __init__(self, message, weights=None):
        super().__init__(message)
        self.weights = weights
        self.step = None
        self.control = None
        self.observation = None
