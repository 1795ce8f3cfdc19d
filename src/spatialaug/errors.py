"""Exception types raised by spatialaug.

Every error derives from :class:`SpatialAugError`, itself a ``ValueError``,
so callers can catch either the package family or the builtin.
"""

from __future__ import annotations


class SpatialAugError(ValueError):
    """Base class for all spatialaug errors."""


class InvalidLambdaError(SpatialAugError):
    """Mixing weight outside ``[0, 1]``."""

    def __init__(self, value: float):
        self.value = value
        super().__init__(f"lambda must lie in [0, 1], got {value!r}")


class InsufficientNeighborsError(SpatialAugError):
    """A group holds fewer than ``k + 1`` observations."""

    def __init__(self, group: object, size: int, k: int):
        self.group = group
        self.size = size
        self.k = k
        where = "data set" if group is None else f"group {group!r}"
        super().__init__(
            f"{where} has {size} observations; k={k} requires at least {k + 1}"
        )


class ShapeMismatchError(SpatialAugError):
    """Row counts disagree between matrices or inputs."""


class MissingCoordinateError(SpatialAugError):
    """Requested coordinate columns are absent from the input."""

    def __init__(self, missing: list[str], available: list[str] | None = None):
        self.missing = list(missing)
        msg = f"Missing coordinate columns: {', '.join(self.missing)}"
        if available:
            msg += f". Available: {', '.join(map(str, available))}"
        super().__init__(msg)
