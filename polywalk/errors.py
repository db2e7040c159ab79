# POLYWALK/polywalk/errors.py

from typing import List

import numpy as np


class SamplingError(Exception):
    """Base class for every error raised by the sampling engine."""


class InfeasibleStart(SamplingError, ValueError):
    """The starting point violates the body's constraints."""


class ConvergenceFailure(SamplingError, RuntimeError):
    """
    A single walk step exhausted its bounded reflection or rejection budget.

    The kernel that raises it has already restored the state it held before
    the step, so the chain can continue from a valid point.
    """
    def __init__(self, walk: str, budget: int, message: str = ''):
        self.walk = walk
        self.budget = budget
        super().__init__(message or f"{walk}: step exceeded its budget of {budget}")


class CapacityExceeded(SamplingError, IndexError):
    """A fixed-capacity sink received more points than it can hold."""


class IncompatibleConfiguration(SamplingError, TypeError):
    """A walk was paired with a distribution or body it cannot serve."""


class SamplingCancelled(SamplingError):
    """The caller's cancellation check asked the driver to stop."""


def validate_run_arguments(walk_length: int, n_samples: int, n_burns: int) -> None:
    """
    Validates the step-count arguments of a sampling run.

    Raises:
        ValueError: listing every invalid argument
    """
    errors: List[str] = []

    for name, value in (('walk_length', walk_length),
                        ('n_samples', n_samples),
                        ('n_burns', n_burns)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            errors.append(f"{name} must be an int, got {type(value).__name__}")
        elif value < 0:
            errors.append(f"{name} must be >= 0, got {value}")

    if errors:
        raise ValueError("Invalid sampling arguments:\n  " + "\n  ".join(errors))
