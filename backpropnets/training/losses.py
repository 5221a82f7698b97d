"""Loss registry used by the network and the training loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Protocol

import numpy as np

from ..core.errors import ConfigurationError, ShapeError
from ..core.types import Array, LossParams

_TINY = np.finfo(np.float64).tiny
_HUGE = np.finfo(np.float64).max


class Loss(Protocol):
    """Scalar objective and its gradient with respect to the network output.

    ``eval`` sums over output columns and averages over observations. ``grad``
    is the elementwise derivative, *not* divided by the number of rows; the
    optimizer takes the batch mean.
    """

    name: str

    def eval(self, y: Array, y_fit: Array) -> float:
        ...

    def grad(self, y: Array, y_fit: Array) -> Array:
        ...


def _check(y: Array, y_fit: Array) -> None:
    if y.shape != y_fit.shape:
        raise ShapeError(f"targets have shape {y.shape} but outputs have {y_fit.shape}")


def _average(losses: Array, n_rows: int) -> float:
    """Sum over outputs and average over rows, clamped to a finite value."""

    losses = np.nan_to_num(losses, nan=_HUGE, posinf=_HUGE, neginf=_HUGE)
    with np.errstate(over="ignore"):
        total = np.sum(np.clip(losses, 0.0, _HUGE)) / n_rows
    return float(min(total, _HUGE))


@dataclass(frozen=True)
class LogLoss:
    """Cross-entropy for one-hot targets."""

    name: str = "log"

    def eval(self, y: Array, y_fit: Array) -> float:
        _check(y, y_fit)
        with np.errstate(divide="ignore"):
            losses = -np.log(y_fit[y == 1])
        return _average(np.clip(losses, _TINY, _HUGE), y.shape[0])

    def grad(self, y: Array, y_fit: Array) -> Array:
        _check(y, y_fit)
        return y_fit - y


@dataclass(frozen=True)
class SquaredLoss:
    name: str = "squared"

    def eval(self, y: Array, y_fit: Array) -> float:
        _check(y, y_fit)
        return _average((y_fit - y) ** 2, y.shape[0])

    def grad(self, y: Array, y_fit: Array) -> Array:
        _check(y, y_fit)
        return 2.0 * (y_fit - y)


@dataclass(frozen=True)
class AbsoluteLoss:
    name: str = "absolute"

    def eval(self, y: Array, y_fit: Array) -> float:
        _check(y, y_fit)
        return _average(np.abs(y_fit - y), y.shape[0])

    def grad(self, y: Array, y_fit: Array) -> Array:
        _check(y, y_fit)
        return np.sign(y_fit - y)


@dataclass(frozen=True)
class HuberLoss:
    """Quadratic inside ``[-delta, delta]``, linear outside."""

    delta: float = 1.0
    name: str = "huber"

    def eval(self, y: Array, y_fit: Array) -> float:
        _check(y, y_fit)
        abs_diff = np.abs(y_fit - y)
        losses = np.where(
            abs_diff <= self.delta,
            0.5 * abs_diff**2,
            self.delta * (abs_diff - 0.5 * self.delta),
        )
        return _average(losses, y.shape[0])

    def grad(self, y: Array, y_fit: Array) -> Array:
        _check(y, y_fit)
        diff = y_fit - y
        return np.where(np.abs(diff) <= self.delta, diff, self.delta * np.sign(diff))


@dataclass(frozen=True)
class PseudoHuberLoss:
    """Smooth approximation of :class:`HuberLoss`."""

    delta: float = 1.0
    name: str = "pseudo_huber"

    def eval(self, y: Array, y_fit: Array) -> float:
        _check(y, y_fit)
        scaled = (y_fit - y) / self.delta
        losses = self.delta**2 * (np.sqrt(1.0 + scaled**2) - 1.0)
        return _average(losses, y.shape[0])

    def grad(self, y: Array, y_fit: Array) -> Array:
        _check(y, y_fit)
        diff = y_fit - y
        return diff / np.sqrt(1.0 + (diff / self.delta) ** 2)


LossFactory = Callable[[LossParams], Loss]


class LossRegistry:
    """Central registry mapping loss tags to factories."""

    def __init__(self) -> None:
        self._registry: Dict[str, LossFactory] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, name: str, factory: LossFactory, *aliases: str) -> None:
        self._registry[name] = factory
        for alias in aliases:
            self._aliases[alias] = name

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def canonical(self, name: str) -> str:
        key = self._aliases.get(name, name)
        if key not in self._registry:
            available = ", ".join(self.names())
            raise ConfigurationError(f"Unknown loss {name!r}. Available losses: {available}")
        return key

    def build(self, params: LossParams) -> Loss:
        key = self.canonical(params.kind)
        return self._registry[key](params)


def _huber_delta(params: LossParams) -> float:
    if not params.huber_delta > 0:
        raise ConfigurationError("huber_delta must be positive")
    return float(params.huber_delta)


REGISTRY = LossRegistry()
REGISTRY.register("log", lambda p: LogLoss(), "ce", "cross_entropy")
REGISTRY.register("squared", lambda p: SquaredLoss(), "quadratic", "mse")
REGISTRY.register("absolute", lambda p: AbsoluteLoss(), "mae")
REGISTRY.register("huber", lambda p: HuberLoss(delta=_huber_delta(p)))
REGISTRY.register(
    "pseudo_huber",
    lambda p: PseudoHuberLoss(delta=_huber_delta(p)),
    "pseudo-huber",
    "pseudoHuber",
)


def build_loss(params: LossParams | str) -> Loss:
    """Resolve ``params.kind`` into a loss instance."""

    if isinstance(params, str):
        params = LossParams(kind=params)
    return REGISTRY.build(params)


__all__ = [
    "Loss",
    "LossRegistry",
    "REGISTRY",
    "LogLoss",
    "SquaredLoss",
    "AbsoluteLoss",
    "HuberLoss",
    "PseudoHuberLoss",
    "build_loss",
]
