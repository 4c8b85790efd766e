# stgmrf_jax/exceptions.py
"""
Package exceptions.

Two kinds of failure are raised eagerly, on the host, before any JAX
arithmetic runs:

- ValidationError: malformed input (length mismatch, bad shapes, negative
  dimensions, invalid counts). Subclasses ValueError.
- ObservationIndexError: a site or time index outside its valid range.
  Subclasses IndexError.

Numerical degeneracy (non positive-definite precision, overflow in exp) is
NOT an exception: it flows through as a non-finite energy so that an
external optimizer can reject the step.

All package errors derive from STGMRFError.
"""
from __future__ import annotations

from typing import Optional


class STGMRFError(Exception):
    """Base exception for all stgmrf_jax errors."""


class ValidationError(STGMRFError, ValueError):
    """
    Raised when user-provided inputs are malformed.

    The message is assembled from optional structured parts so callers can
    see what was expected and what was received.

    Examples
    --------
    >>> raise ValidationError(
    ...     "Observation sequences differ in length",
    ...     expected="len(site_index) == len(counts) == 5",
    ...     got="len(site_index) == 4",
    ... )
    """

    def __init__(
        self,
        message: str,
        expected: Optional[str] = None,
        got: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.expected = expected
        self.got = got
        self.hint = hint

        parts = [message]
        if expected is not None:
            parts.append(f"Expected: {expected}")
        if got is not None:
            parts.append(f"Got: {got}")
        if hint is not None:
            parts.append(f"Hint: {hint}")
        super().__init__("\n".join(parts))


class ObservationIndexError(STGMRFError, IndexError):
    """
    Raised when an observation points outside the site/time grid.

    Attributes
    ----------
    position : int
        Position of the offending observation in the observation sequences.
    axis : str
        "site" or "time".
    index : int
        The offending index value.
    bound : int
        Exclusive upper bound of the valid range, i.e. n_s or n_t.
    """

    def __init__(self, position: int, axis: str, index: int, bound: int):
        self.position = int(position)
        self.axis = axis
        self.index = int(index)
        self.bound = int(bound)
        super().__init__(
            f"Observation {self.position}: {axis} index {self.index} "
            f"is outside the valid range [0, {self.bound})"
        )


__all__ = [
    "STGMRFError",
    "ValidationError",
    "ObservationIndexError",
]
