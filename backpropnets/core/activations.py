"""Activation strategies for backpropnets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Protocol, Type

import numpy as np

from .errors import ConfigurationError
from .types import ActivationParams, Array

# exp() overflows float64 just above 709
_EXP_LIMIT = 500.0


class Activation(Protocol):
    """Protocol implemented by elementwise activation functions."""

    name: str

    def eval(self, z: Array) -> Array:
        """Return the activation of the pre-activation matrix ``z``."""

    def grad(self, z: Array) -> Array:
        """Return the elementwise derivative evaluated at ``z``."""


def _logistic(z: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-np.clip(z, -_EXP_LIMIT, _EXP_LIMIT)))


@dataclass(frozen=True)
class Linear:
    name: str = "linear"

    def eval(self, z: Array) -> Array:
        return z.copy()

    def grad(self, z: Array) -> Array:
        return np.ones_like(z)


@dataclass(frozen=True)
class Sigmoid:
    name: str = "sigmoid"

    def eval(self, z: Array) -> Array:
        return _logistic(z)

    def grad(self, z: Array) -> Array:
        s = _logistic(z)
        return s * (1.0 - s)


@dataclass(frozen=True)
class Tanh:
    name: str = "tanh"

    def eval(self, z: Array) -> Array:
        return np.tanh(z)

    def grad(self, z: Array) -> Array:
        return 1.0 - np.tanh(z) ** 2


@dataclass(frozen=True)
class Relu:
    name: str = "relu"

    def eval(self, z: Array) -> Array:
        return np.maximum(z, 0.0)

    def grad(self, z: Array) -> Array:
        return (z > 0).astype(np.float64)


@dataclass(frozen=True)
class Ramp:
    """Identity clamped to ``[-1, 1]``."""

    name: str = "ramp"

    def eval(self, z: Array) -> Array:
        return np.clip(z, -1.0, 1.0)

    def grad(self, z: Array) -> Array:
        return (np.abs(z) < 1.0).astype(np.float64)


@dataclass(frozen=True)
class Step:
    """Smoothed staircase built from ``h`` logistic steps.

    The steps sit at evenly spaced offsets inside ``(-1, 1)`` and each
    contributes ``1/h`` to the output, so the function rises from 0 to 1.
    Larger ``k`` gives sharper steps.
    """

    h: int = 5
    k: float = 100.0
    name: str = "step"

    def _offsets(self) -> Array:
        return (2.0 * np.arange(1, self.h + 1) - self.h - 1.0) / self.h

    def _steps(self, z: Array) -> Array:
        shifted = z[..., np.newaxis] - self._offsets()
        return _logistic(self.k * shifted)

    def eval(self, z: Array) -> Array:
        return self._steps(z).sum(axis=-1) / self.h

    def grad(self, z: Array) -> Array:
        s = self._steps(z)
        return self.k * (s * (1.0 - s)).sum(axis=-1) / self.h


@dataclass(frozen=True)
class Softmax:
    """Row-wise softmax for classification outputs.

    ``grad`` returns ones: paired with log loss, ``Yhat - Y`` is already the
    gradient with respect to the pre-activation.
    """

    name: str = "softmax"

    def eval(self, z: Array) -> Array:
        shifted = z - z.max(axis=1, keepdims=True)
        e = np.exp(np.clip(shifted, -_EXP_LIMIT, 0.0))
        return e / e.sum(axis=1, keepdims=True)

    def grad(self, z: Array) -> Array:
        return np.ones_like(z)


_ACTIVATIONS: Dict[str, Type] = {
    "linear": Linear,
    "sigmoid": Sigmoid,
    "tanh": Tanh,
    "relu": Relu,
    "ramp": Ramp,
    "step": Step,
    "softmax": Softmax,
}


def names() -> list[str]:
    return sorted(_ACTIVATIONS)


def build_activation(params: ActivationParams | str) -> Activation:
    """Return the activation selected by ``params.kind``."""

    if isinstance(params, str):
        params = ActivationParams(kind=params)
    kind = params.kind.lower()
    if kind not in _ACTIVATIONS:
        available = ", ".join(names())
        raise ConfigurationError(
            f"Unknown activation {params.kind!r}. Available activations: {available}"
        )
    if kind == "step":
        if int(params.step_h) < 1:
            raise ConfigurationError("step_h must be a positive integer")
        if params.step_k <= 0:
            raise ConfigurationError("step_k must be positive")
        return Step(h=int(params.step_h), k=float(params.step_k))
    return _ACTIVATIONS[kind]()


__all__ = [
    "Activation",
    "Linear",
    "Sigmoid",
    "Tanh",
    "Relu",
    "Ramp",
    "Step",
    "Softmax",
    "build_activation",
    "names",
]
