"""Optimizer strategies owned by individual layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Protocol, Tuple

import numpy as np

from .errors import ConfigurationError, ShapeError
from .types import Array, OptimizerParams


class Optimizer(Protocol):
    """Protocol implemented by per-layer update rules."""

    params: OptimizerParams

    def step(self, W: Array, b: Array, delta: Array, a_prev: Array) -> Tuple[Array, Array]:
        """Return updated ``(W, b)`` given the layer delta and cached input."""


@dataclass
class _BaseOptimizer:
    """Gradient bookkeeping shared by every optimizer.

    ``delta`` is ``(n, out_dim)`` and ``a_prev`` is ``(n, in_dim)``. The batch
    mean is taken here so that loss gradients never carry a ``1/n`` factor.
    Regularisation applies to the weights only.
    """

    params: OptimizerParams
    state: Dict[str, Array] = field(default_factory=dict, repr=False)

    def gradients(self, W: Array, delta: Array, a_prev: Array) -> Tuple[Array, Array]:
        if delta.shape[0] != a_prev.shape[0]:
            raise ShapeError(
                f"delta has {delta.shape[0]} rows but the cached input has {a_prev.shape[0]}"
            )
        n = delta.shape[0]
        grad_W = delta.T @ a_prev / n
        grad_b = delta.sum(axis=0) / n
        if self.params.l1:
            grad_W = grad_W + self.params.l1 * np.sign(W)
        if self.params.l2:
            grad_W = grad_W + self.params.l2 * W
        return grad_W, grad_b

    def step(self, W: Array, b: Array, delta: Array, a_prev: Array) -> Tuple[Array, Array]:
        grad_W, grad_b = self.gradients(W, delta, a_prev)
        self._begin_step()
        return self._update("W", W, grad_W), self._update("b", b, grad_b)

    def _slot(self, key: str, like: Array) -> Array:
        if key not in self.state:
            self.state[key] = np.zeros_like(like)
        return self.state[key]

    def _begin_step(self) -> None:
        pass

    def _update(self, name: str, param: Array, grad: Array) -> Array:  # pragma: no cover
        raise NotImplementedError


@dataclass
class SGD(_BaseOptimizer):
    """Stochastic gradient descent with momentum; ``momentum=0`` is plain SGD."""

    def _update(self, name: str, param: Array, grad: Array) -> Array:
        velocity = self.params.momentum * self._slot(f"v_{name}", param)
        velocity = velocity - self.params.learn_rate * grad
        self.state[f"v_{name}"] = velocity
        return param + velocity


@dataclass
class RMSprop(_BaseOptimizer):
    def _update(self, name: str, param: Array, grad: Array) -> Array:
        rho = self.params.decay
        cache = rho * self._slot(f"c_{name}", param) + (1.0 - rho) * grad**2
        self.state[f"c_{name}"] = cache
        return param - self.params.learn_rate * grad / (np.sqrt(cache) + self.params.epsilon)


@dataclass
class Adam(_BaseOptimizer):
    """Adam with bias-corrected moments; ``t`` counts calls to :meth:`step`."""

    t: int = 0

    def _begin_step(self) -> None:
        self.t += 1

    def _update(self, name: str, param: Array, grad: Array) -> Array:
        beta1, beta2 = self.params.beta1, self.params.beta2
        m = beta1 * self._slot(f"m_{name}", param) + (1.0 - beta1) * grad
        v = beta2 * self._slot(f"v_{name}", param) + (1.0 - beta2) * grad**2
        self.state[f"m_{name}"] = m
        self.state[f"v_{name}"] = v
        m_hat = m / (1.0 - beta1**self.t)
        v_hat = v / (1.0 - beta2**self.t)
        return param - self.params.learn_rate * m_hat / (np.sqrt(v_hat) + self.params.epsilon)


_OPTIMIZERS = {"sgd": SGD, "rmsprop": RMSprop, "adam": Adam}


def _validate(params: OptimizerParams) -> None:
    if params.learn_rate <= 0:
        raise ConfigurationError("learn_rate must be positive")
    if params.l1 < 0 or params.l2 < 0:
        raise ConfigurationError("L1 and L2 must be non-negative")
    if not 0 <= params.momentum < 1:
        raise ConfigurationError("momentum must be in [0, 1)")
    if not 0 <= params.decay < 1:
        raise ConfigurationError("decay must be in [0, 1)")
    if not (0 <= params.beta1 < 1 and 0 <= params.beta2 < 1):
        raise ConfigurationError("beta1 and beta2 must be in [0, 1)")
    if params.epsilon <= 0:
        raise ConfigurationError("epsilon must be positive")


def build_optimizer(params: OptimizerParams) -> Optimizer:
    """Return a fresh optimizer instance for one layer."""

    kind = params.kind.lower()
    if kind not in _OPTIMIZERS:
        available = ", ".join(sorted(_OPTIMIZERS))
        raise ConfigurationError(
            f"Unknown optimizer {params.kind!r}. Available optimizers: {available}"
        )
    _validate(params)
    return _OPTIMIZERS[kind](params=params)


__all__ = ["Optimizer", "SGD", "RMSprop", "Adam", "build_optimizer"]
