"""Exceptions raised while building margins and raking."""

from typing import Any


class RakingError(Exception):
    """Base class for all scalerake errors."""


class ConfigError(RakingError, ValueError):
    """Malformed tables, mismatched margin totals, or unknown categories."""


class ZeroCellError(RakingError):
    """A category has a positive target but no weighted sample mass."""

    def __init__(self, variable: str, category: Any, target: float):
        self.variable = variable
        self.category = category
        self.target = target
        super().__init__(
            f"Cannot rake '{variable}': category {category!r} has target "
            f"{target:g} but zero weighted sample count"
        )


class ConvergenceError(RakingError):
    """Raking did not meet the tolerance within the iteration budget."""

    def __init__(self, variable: str, category: Any, deviation: float, iterations: int):
        self.variable = variable
        self.category = category
        self.deviation = deviation
        self.iterations = iterations
        super().__init__(
            f"Raking did not converge after {iterations} iterations; worst "
            f"residual is '{variable}'={category!r} with relative deviation "
            f"{deviation:.3e}"
        )


class RakingCancelled(RakingError):
    """Raking was cancelled between passes."""

    def __init__(self, iterations: int):
        self.iterations = iterations
        super().__init__(f"Raking cancelled after {iterations} completed passes")
