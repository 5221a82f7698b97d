"""Feed-forward network: an ordered stack of layers and a loss."""

from __future__ import annotations

from typing import List, Mapping, Sequence

import numpy as np

from ..training.losses import Loss, build_loss
from .errors import ConfigurationError, check_columns
from .layers import Layer
from .types import (
    ActivationParams,
    Array,
    HistoryRecord,
    LossParams,
    ModelMeta,
    OptimizerParams,
)


def broadcast(values, count: int, what: str) -> list:
    """Expand a scalar, a one-element sequence or an array to ``count`` per-layer values."""

    if isinstance(values, (str, ActivationParams, OptimizerParams)):
        return [values] * count
    if isinstance(values, np.ndarray):
        values = np.atleast_1d(values).tolist()
    elif not isinstance(values, Sequence):
        return [values] * count
    values = list(values)
    if len(values) == 1:
        return values * count
    if len(values) != count:
        raise ConfigurationError(f"Expected 1 or {count} {what}, got {len(values)}")
    return values


class Network:
    """Multilayer perceptron trained with backpropagation.

    Parameters
    ----------
    num_nodes:
        Node counts from the input layer to the output layer, e.g. ``[4, 2, 1]``.
    activations:
        One activation per weight layer (``len(num_nodes) - 1``) or a single
        value broadcast to all of them.
    loss:
        Loss kind or :class:`LossParams`.
    optimizer:
        One :class:`OptimizerParams` per layer or a single record broadcast.
    rng:
        Source of randomness for weight initialisation. An ``int`` seeds a new
        generator.
    """

    def __init__(
        self,
        num_nodes: Sequence[int],
        activations: Sequence[ActivationParams | str] | ActivationParams | str,
        loss: LossParams | str,
        optimizer: Sequence[OptimizerParams] | OptimizerParams,
        rng: np.random.Generator | int | None = None,
        *,
        regression: bool = True,
        y_names: Sequence[str] = (),
        x_names: Sequence[str] = (),
        autoencoder: bool = False,
    ) -> None:
        num_nodes = [int(n) for n in num_nodes]
        if len(num_nodes) < 2:
            raise ConfigurationError("A network needs at least an input and an output layer")
        if any(n < 1 for n in num_nodes):
            raise ConfigurationError(f"Node counts must be positive, got {num_nodes}")
        if not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)

        n_layers = len(num_nodes) - 1
        activ_list = broadcast(activations, n_layers, "activations")
        optim_list = broadcast(optimizer, n_layers, "optimizer settings")

        self.loss_params = loss if isinstance(loss, LossParams) else LossParams(kind=loss)
        self.loss: Loss = build_loss(self.loss_params)
        for idx, activ in enumerate(activ_list):
            kind = activ if isinstance(activ, str) else activ.kind
            if kind == "softmax" and (idx != n_layers - 1 or self.loss.name != "log"):
                raise ConfigurationError("softmax is only supported on the output layer with log loss")

        self.rng = rng
        self.layers: List[Layer] = [
            Layer.create(n_in, n_out, activ, optim, rng)
            for n_in, n_out, activ, optim in zip(
                num_nodes[:-1], num_nodes[1:], activ_list, optim_list
            )
        ]
        for prev, nxt in zip(self.layers[:-1], self.layers[1:]):
            if prev.out_dim != nxt.in_dim:  # pragma: no cover - guaranteed by construction
                raise ConfigurationError("Consecutive layer dimensions do not match")

        self.meta = ModelMeta(
            n_in=num_nodes[0],
            n_out=num_nodes[-1],
            num_nodes=tuple(num_nodes),
            regression=regression,
            y_names=tuple(str(n) for n in y_names),
            x_names=tuple(str(n) for n in x_names),
            autoencoder=autoencoder,
        )
        self.history: List[HistoryRecord] = []

    # ------------------------------------------------------------------
    # Passes

    def forward(self, inputs: Array) -> Array:
        out = np.asarray(inputs, dtype=np.float64)
        check_columns(out, self.meta.n_in, "X")
        for layer in self.layers:
            out = layer.forward(out)
        return out

    def predict(self, inputs: Array) -> Array:
        """Inference pass that leaves the backward caches untouched."""

        return self.partial_forward(inputs, 0, len(self.layers))

    def partial_forward(self, inputs: Array, from_layer: int, to_layer: int) -> Array:
        """Run layers ``from_layer`` up to but excluding ``to_layer``.

        Layer ``i`` maps node layer ``i`` to node layer ``i + 1``, so
        ``partial_forward(X, 0, k)`` returns the activations of node layer ``k``.
        """

        if not 0 <= from_layer <= to_layer <= len(self.layers):
            raise ConfigurationError(
                f"Invalid layer range [{from_layer}, {to_layer}) for {len(self.layers)} layers"
            )
        out = np.asarray(inputs, dtype=np.float64)
        check_columns(out, self.meta.num_nodes[from_layer], "X")
        for layer in self.layers[from_layer:to_layer]:
            out = layer.predict(out)
        return out

    def backward(self, targets: Array, outputs: Array) -> None:
        error = self.loss.grad(targets, outputs)
        for layer in reversed(self.layers):
            error = layer.backward(error)

    def loss_value(self, inputs: Array, targets: Array) -> float:
        targets = np.asarray(targets, dtype=np.float64)
        check_columns(targets, self.meta.n_out, "Y")
        return self.loss.eval(targets, self.predict(inputs))

    # ------------------------------------------------------------------
    # Training

    def train(self, inputs: Array, targets: Array, params, **kwargs) -> List[HistoryRecord]:
        """Convenience wrapper around :class:`~backpropnets.training.trainer.Trainer`."""

        from ..training.trainer import Trainer

        return Trainer(self, **kwargs).train(inputs, targets, params)

    def get_train_history(self) -> List[HistoryRecord]:
        return list(self.history)

    def get_meta(self) -> ModelMeta:
        return self.meta

    # ------------------------------------------------------------------
    # Parameters

    def state_dict(self) -> Mapping[str, Array]:
        state = {}
        for idx, layer in enumerate(self.layers):
            for name, value in layer.state_dict().items():
                state[f"{name}{idx}"] = value
        return state

    def load_state_dict(self, state: Mapping[str, Array]) -> None:
        for idx, layer in enumerate(self.layers):
            missing = [key for key in (f"W{idx}", f"b{idx}") if key not in state]
            if missing:
                raise KeyError(f"Missing parameters {missing} in state dict")
            layer.load_state_dict({"W": state[f"W{idx}"], "b": state[f"b{idx}"]})

    def parameter_count(self) -> int:
        return int(sum(layer.W.size + layer.b.size for layer in self.layers))

    def __repr__(self) -> str:
        activ = [layer.activation.name for layer in self.layers]
        return (
            f"Network(num_nodes={list(self.meta.num_nodes)}, activations={activ}, "
            f"loss={self.loss.name!r})"
        )


__all__ = ["Network", "broadcast"]
