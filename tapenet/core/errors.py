"""Exception taxonomy for tapenet.

Every error derives from :class:`TapenetError` and from the closest builtin
so callers can catch either.  The core never retries: these signal a
programming or configuration defect, not a transient condition.
"""

from __future__ import annotations


class TapenetError(Exception):
    """Base class for all tapenet errors."""


class ShapeMismatchError(TapenetError, ValueError):
    """An input or label vector disagrees with the network topology."""


class LengthMismatchError(TapenetError, ValueError):
    """Two vectors that must be aligned have different lengths."""


class InvalidDifferentiationError(TapenetError, ValueError):
    """A gradient was requested of a constant or of a value not on the tape."""


class EmptyInputError(TapenetError, ValueError):
    """An operation that needs at least one element received none."""


class NumericInstabilityError(TapenetError, ArithmeticError):
    """An operation produced NaN or an infinite value."""


class DatasetError(TapenetError, OSError):
    """A dataset could not be located, read or parsed."""


__all__ = [
    "DatasetError",
    "EmptyInputError",
    "InvalidDifferentiationError",
    "LengthMismatchError",
    "NumericInstabilityError",
    "ShapeMismatchError",
    "TapenetError",
]
