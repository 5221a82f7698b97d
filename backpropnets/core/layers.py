"""Fully connected layer with its own parameters and optimizer state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

import numpy as np

from .activations import Activation, build_activation
from .errors import ConfigurationError, ShapeError, check_columns
from .optimizers import Optimizer, build_optimizer
from .types import ActivationParams, Array, OptimizerParams


@dataclass
class Layer:
    """Dense layer computing ``activation(X @ W.T + b)``.

    ``W`` has shape ``(out_dim, in_dim)``. The layer owns ``W``, ``b`` and the
    optimizer that updates them; nothing else writes to these arrays.
    """

    in_dim: int
    out_dim: int
    activation: Activation
    optimizer: Optimizer
    W: Array = field(repr=False)
    b: Array = field(repr=False)
    a_prev: Optional[Array] = field(default=None, init=False, repr=False)
    z: Optional[Array] = field(default=None, init=False, repr=False)

    @classmethod
    def create(
        cls,
        in_dim: int,
        out_dim: int,
        activation: ActivationParams | str,
        optimizer: OptimizerParams,
        rng: np.random.Generator,
    ) -> "Layer":
        if in_dim < 1 or out_dim < 1:
            raise ConfigurationError(
                f"Layer dimensions must be positive, got {in_dim} -> {out_dim}"
            )
        W = rng.standard_normal((out_dim, in_dim)) / np.sqrt(in_dim)
        b = np.zeros(out_dim)
        return cls(
            in_dim=in_dim,
            out_dim=out_dim,
            activation=build_activation(activation),
            optimizer=build_optimizer(optimizer),
            W=W,
            b=b,
        )

    def predict(self, inputs: Array) -> Array:
        """Forward pass without touching the backward caches."""

        check_columns(inputs, self.in_dim, "layer input")
        return self.activation.eval(inputs @ self.W.T + self.b)

    def forward(self, inputs: Array) -> Array:
        check_columns(inputs, self.in_dim, "layer input")
        self.a_prev = inputs
        self.z = inputs @ self.W.T + self.b
        return self.activation.eval(self.z)

    def backward(self, error: Array) -> Array:
        """Update the parameters and return the error for the previous layer."""

        if self.z is None or self.a_prev is None:
            raise ShapeError("backward called without a preceding forward pass")
        if error.shape != self.z.shape:
            raise ShapeError(
                f"error signal has shape {error.shape}, expected {self.z.shape}"
            )
        delta = error * self.activation.grad(self.z)
        propagated = delta @ self.W
        self.W, self.b = self.optimizer.step(self.W, self.b, delta, self.a_prev)
        self.a_prev = None
        self.z = None
        return propagated

    def state_dict(self) -> Mapping[str, Array]:
        return {"W": self.W.copy(), "b": self.b.copy()}

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        if state["W"].shape != self.W.shape or state["b"].shape != self.b.shape:
            raise ShapeError("state dict does not match the layer dimensions")
        self.W = state["W"].copy()
        self.b = state["b"].copy()


__all__ = ["Layer"]
