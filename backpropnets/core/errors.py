"""Exception types raised by the training engine."""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Unknown strategy tag, inconsistent layer sizes or invalid hyperparameters."""


class ShapeError(ValueError):
    """Matrix dimensions do not agree with the network or with each other."""


def check_columns(array, expected: int, what: str = "input") -> None:
    """Raise :class:`ShapeError` unless ``array`` is 2-D with ``expected`` columns."""

    if array.ndim != 2:
        raise ShapeError(f"{what} must be a 2-D matrix, got {array.ndim} dimension(s)")
    if array.shape[1] != expected:
        raise ShapeError(
            f"{what} has {array.shape[1]} column(s) but {expected} were expected"
        )


__all__ = ["ConfigurationError", "ShapeError", "check_columns"]
