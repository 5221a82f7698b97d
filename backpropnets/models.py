"""User-facing entry points: build, train and query neural networks.

These functions take raw feature/target data (numpy arrays or pandas
objects), validate and standardise it, and hand clean ``float64`` matrices to
:class:`~backpropnets.core.network.Network` and
:class:`~backpropnets.training.trainer.Trainer`.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder, StandardScaler

from .core.errors import ConfigurationError
from .core.network import Network, broadcast
from .core.types import (
    ActivationParams,
    Array,
    HistoryRecord,
    LossParams,
    OptimizerParams,
    TrainParams,
)
from .data.utils import one_hot
from .training.losses import REGISTRY as LOSS_REGISTRY
from .training.trainer import Trainer

logger = logging.getLogger(__name__)


@dataclass
class ANN:
    """A trained network together with the preprocessing fitted on its data."""

    network: Network
    x_scaler: Optional[StandardScaler] = None
    y_scaler: Optional[StandardScaler] = None
    label_encoder: Optional[LabelEncoder] = None
    autoencoder: bool = False

    @property
    def meta(self):
        return self.network.get_meta()

    @property
    def history(self) -> List[HistoryRecord]:
        return self.network.get_train_history()

    def __str__(self) -> str:
        meta = self.meta
        if self.autoencoder:
            kind = "autoencoder"
        else:
            kind = "regression" if meta.regression else "classification"
        last = self.history[-1] if self.history else None
        lines = [
            f"Artificial Neural Network ({kind})",
            f"  layers     : {list(meta.num_nodes)}",
            f"  activations: {[layer.activation.name for layer in self.network.layers]}",
            f"  loss       : {self.network.loss.name}",
            f"  optimizer  : {self.network.layers[0].optimizer.params.kind}",
            f"  epochs     : {last.epoch if last else 0}",
        ]
        if last is not None:
            lines.append(f"  train loss : {last.train_loss:.6f}")
            if last.val_loss is not None:
                lines.append(f"  valid loss : {last.val_loss:.6f}")
        return "\n".join(lines)


# ----------------------------------------------------------------------
# Validation helpers


def _as_matrix(data, what: str) -> tuple[Array, tuple[str, ...]]:
    if isinstance(data, pd.Series):
        data = data.to_frame()
    if isinstance(data, pd.DataFrame):
        names = tuple(str(c) for c in data.columns)
        non_numeric = [c for c in data.columns if not pd.api.types.is_numeric_dtype(data[c])]
        if non_numeric:
            raise ValueError(f"{what} should be numeric, offending columns: {non_numeric}")
        array = data.to_numpy(dtype=np.float64)
    else:
        array = np.asarray(data)
        if array.ndim == 1:
            array = array.reshape(-1, 1)
        if array.ndim != 2:
            raise ValueError(f"{what} must be a 2-D matrix")
        if not np.issubdtype(array.dtype, np.number):
            raise ValueError(f"{what} should be numeric")
        array = array.astype(np.float64)
        names = tuple(f"{what}{i + 1}" for i in range(array.shape[1]))
    if np.isnan(array).any():
        raise ValueError(f"{what} contains missing values")
    return array, names


def _as_labels(data) -> Array:
    if isinstance(data, pd.DataFrame):
        if data.shape[1] != 1:
            raise ValueError("Y should have a single column for classification")
        data = data.iloc[:, 0]
    labels = np.asarray(data, dtype=object)
    if labels.ndim == 2:
        if labels.shape[1] != 1:
            raise ValueError("Y should have a single column for classification")
        labels = labels[:, 0]
    if pd.isna(labels).any():
        raise ValueError("Y contains missing values")
    return labels


def _check_columns(X: Array, expected: int, what: str) -> None:
    if X.shape[1] != expected:
        raise ValueError(f"{what} has {X.shape[1]} columns but the network expects {expected}")


def _hidden_layers(hidden_layers) -> list[int]:
    if hidden_layers is None:
        return []
    if isinstance(hidden_layers, (int, np.integer)):
        hidden_layers = [hidden_layers]
    hidden = [int(h) for h in hidden_layers]
    if any(h < 1 for h in hidden):
        raise ConfigurationError("hidden_layers must contain positive node counts")
    return hidden


def _prepare_targets(
    Y,
    regression: bool,
    label_encoder: Optional[LabelEncoder],
    y_scaler: Optional[StandardScaler],
) -> Array:
    if regression:
        Y_arr, _ = _as_matrix(Y, "Y")
        return y_scaler.transform(Y_arr) if y_scaler is not None else Y_arr
    labels = _as_labels(Y)
    unknown = set(labels) - set(label_encoder.classes_)
    if unknown:
        unseen = sorted(map(str, unknown))
        raise ValueError(f"Y contains labels unseen during construction: {unseen}")
    return one_hot(label_encoder.transform(labels), len(label_encoder.classes_))


def build_model(
    X,
    Y,
    *,
    hidden_layers,
    regression: bool = False,
    autoencoder: bool = False,
    standardize: bool = True,
    loss_type: Optional[str] = None,
    huber_delta: float = 1.0,
    activ_functions="tanh",
    step_H: int = 5,
    step_k: float = 100.0,
    optim_type: str = "sgd",
    learn_rates=1e-4,
    L1: float = 0.0,
    L2: float = 0.0,
    sgd_momentum: float = 0.9,
    rmsprop_decay: float = 0.9,
    adam_beta1: float = 0.9,
    adam_beta2: float = 0.999,
    random_state=None,
) -> tuple[ANN, Array, Array]:
    """Validate the data, fit preprocessing and construct an untrained :class:`ANN`.

    Returns the model together with the standardised ``X`` and encoded ``Y``
    ready for :class:`~backpropnets.training.trainer.Trainer`.
    """

    X_arr, x_names = _as_matrix(X, "X")
    hidden = _hidden_layers(hidden_layers)
    if autoencoder:
        regression = True

    x_scaler = StandardScaler().fit(X_arr) if standardize else None
    X_std = x_scaler.transform(X_arr) if x_scaler is not None else X_arr

    label_encoder = None
    y_scaler = None
    if autoencoder:
        y_names = x_names
        y_scaler = x_scaler
        Y_std = X_std
    elif regression:
        Y_arr, y_names = _as_matrix(Y, "Y")
        y_scaler = StandardScaler().fit(Y_arr) if standardize else None
        Y_std = y_scaler.transform(Y_arr) if y_scaler is not None else Y_arr
    else:
        labels = _as_labels(Y)
        label_encoder = LabelEncoder().fit(labels)
        y_names = tuple(str(c) for c in label_encoder.classes_)
        if len(y_names) < 2:
            raise ValueError("Classification requires at least two distinct classes in Y")
        Y_std = one_hot(label_encoder.transform(labels), len(y_names))

    if X_std.shape[0] != Y_std.shape[0]:
        raise ValueError(f"X has {X_std.shape[0]} rows but Y has {Y_std.shape[0]}")

    loss_kind = LOSS_REGISTRY.canonical(loss_type or ("squared" if regression else "log"))
    if regression and loss_kind == "log":
        raise ConfigurationError("log loss is only available for classification")
    if not regression and loss_kind != "log":
        raise ConfigurationError("classification requires log loss")

    hidden_activ = broadcast(activ_functions, len(hidden), "activ_functions") if hidden else []
    output_activ = "linear" if regression else "softmax"
    activations = [
        ActivationParams(kind=str(kind), step_h=int(step_H), step_k=float(step_k))
        for kind in hidden_activ + [output_activ]
    ]
    base = OptimizerParams(
        kind=str(optim_type),
        l1=float(L1),
        l2=float(L2),
        momentum=float(sgd_momentum),
        decay=float(rmsprop_decay),
        beta1=float(adam_beta1),
        beta2=float(adam_beta2),
    )
    optimizers = [
        replace(base, learn_rate=float(lr))
        for lr in broadcast(learn_rates, len(hidden) + 1, "learn_rates")
    ]

    network = Network(
        [X_std.shape[1], *hidden, Y_std.shape[1]],
        activations,
        LossParams(kind=loss_kind, huber_delta=float(huber_delta)),
        optimizers,
        rng=random_state,
        regression=regression,
        y_names=y_names,
        x_names=x_names,
        autoencoder=autoencoder,
    )
    ann = ANN(
        network=network,
        x_scaler=x_scaler,
        y_scaler=y_scaler,
        label_encoder=label_encoder,
        autoencoder=autoencoder,
    )
    return ann, X_std, Y_std


def _fit(
    ann: ANN, X_std: Array, Y_std: Array, params: TrainParams, verbose: bool
) -> List[HistoryRecord]:
    trainer = Trainer(ann.network, verbose=verbose)
    added = trainer.train(X_std, Y_std, params)
    if verbose:
        logger.info("%s", ann)
    return added


# ----------------------------------------------------------------------
# Entry points


def neuralnetwork(
    X,
    Y,
    hidden_layers,
    regression: bool = False,
    standardize: bool = True,
    loss_type: Optional[str] = None,
    huber_delta: float = 1.0,
    activ_functions="tanh",
    step_H: int = 5,
    step_k: float = 100.0,
    optim_type: str = "sgd",
    learn_rates=1e-4,
    L1: float = 0.0,
    L2: float = 0.0,
    sgd_momentum: float = 0.9,
    rmsprop_decay: float = 0.9,
    adam_beta1: float = 0.9,
    adam_beta2: float = 0.999,
    n_epochs: int = 100,
    batch_size: int = 32,
    drop_last: bool = True,
    val_prop: float = 0.1,
    patience: Optional[int] = None,
    verbose: bool = True,
    random_state=None,
) -> ANN:
    """Define and train a multilayer network for regression or classification.

    For classification ``Y`` holds one label per row; labels are one-hot
    encoded, the output layer uses softmax and the loss must be ``"log"``.
    For regression the output layer is linear. ``activ_functions`` and
    ``learn_rates`` are broadcast over the hidden layers and the weight
    layers respectively.
    """

    ann, X_std, Y_std = build_model(
        X,
        Y,
        hidden_layers=hidden_layers,
        regression=regression,
        autoencoder=False,
        standardize=standardize,
        loss_type=loss_type,
        huber_delta=huber_delta,
        activ_functions=activ_functions,
        step_H=step_H,
        step_k=step_k,
        optim_type=optim_type,
        learn_rates=learn_rates,
        L1=L1,
        L2=L2,
        sgd_momentum=sgd_momentum,
        rmsprop_decay=rmsprop_decay,
        adam_beta1=adam_beta1,
        adam_beta2=adam_beta2,
        random_state=random_state,
    )
    params = TrainParams(
        n_epochs=n_epochs,
        batch_size=batch_size,
        val_prop=val_prop,
        drop_last=drop_last,
        patience=patience,
    )
    _fit(ann, X_std, Y_std, params, verbose)
    return ann


def autoencoder(
    X,
    hidden_layers,
    standardize: bool = True,
    loss_type: str = "squared",
    huber_delta: float = 1.0,
    activ_functions="tanh",
    step_H: int = 5,
    step_k: float = 100.0,
    optim_type: str = "sgd",
    learn_rates=1e-4,
    L1: float = 0.0,
    L2: float = 0.0,
    sgd_momentum: float = 0.9,
    rmsprop_decay: float = 0.9,
    adam_beta1: float = 0.9,
    adam_beta2: float = 0.999,
    n_epochs: int = 100,
    batch_size: int = 32,
    drop_last: bool = True,
    val_prop: float = 0.1,
    patience: Optional[int] = None,
    verbose: bool = True,
    random_state=None,
) -> ANN:
    """Train a network to reproduce ``X`` through a bottleneck hidden layer."""

    ann, X_std, Y_std = build_model(
        X,
        None,
        hidden_layers=hidden_layers,
        regression=True,
        autoencoder=True,
        standardize=standardize,
        loss_type=loss_type,
        huber_delta=huber_delta,
        activ_functions=activ_functions,
        step_H=step_H,
        step_k=step_k,
        optim_type=optim_type,
        learn_rates=learn_rates,
        L1=L1,
        L2=L2,
        sgd_momentum=sgd_momentum,
        rmsprop_decay=rmsprop_decay,
        adam_beta1=adam_beta1,
        adam_beta2=adam_beta2,
        random_state=random_state,
    )
    params = TrainParams(
        n_epochs=n_epochs,
        batch_size=batch_size,
        val_prop=val_prop,
        drop_last=drop_last,
        patience=patience,
    )
    _fit(ann, X_std, Y_std, params, verbose)
    return ann


def train(
    ann: ANN,
    X,
    Y=None,
    n_epochs: int = 20,
    batch_size: int = 32,
    drop_last: bool = True,
    val_prop: float = 0.1,
    patience: Optional[int] = None,
    verbose: bool = True,
) -> List[HistoryRecord]:
    """Continue training ``ann`` from its current parameters.

    A fresh validation split is drawn, so the validation curve can jump
    between consecutive calls.
    """

    meta = ann.meta
    if ann.autoencoder:
        if Y is not None:
            raise ValueError("Object of type autoencoder but Y is given")
    elif Y is None:
        raise ValueError("Y matrix of dependent variables needed")

    X_arr, _ = _as_matrix(X, "X")
    _check_columns(X_arr, meta.n_in, "X")
    X_std = ann.x_scaler.transform(X_arr) if ann.x_scaler is not None else X_arr
    if ann.autoencoder:
        Y_std = X_std
    else:
        Y_std = _prepare_targets(Y, meta.regression, ann.label_encoder, ann.y_scaler)
        _check_columns(Y_std, meta.n_out, "Y")

    params = TrainParams(
        n_epochs=n_epochs,
        batch_size=batch_size,
        val_prop=val_prop,
        drop_last=drop_last,
        patience=patience,
    )
    return _fit(ann, X_std, Y_std, params, verbose)


def _standardized_input(ann: ANN, X, what: str) -> Array:
    X_arr, _ = _as_matrix(X, what)
    _check_columns(X_arr, ann.meta.n_in, what)
    return ann.x_scaler.transform(X_arr) if ann.x_scaler is not None else X_arr


def _unscale_output(ann: ANN, fit: Array) -> Array:
    return ann.y_scaler.inverse_transform(fit) if ann.y_scaler is not None else fit


def predict(ann: ANN, newdata) -> Dict[str, object]:
    """Predict values (regression) or classes and probabilities (classification).

    Class probabilities come back as a DataFrame with one ``class_<label>``
    column per class.
    """

    fit = ann.network.predict(_standardized_input(ann, newdata, "newdata"))
    if ann.meta.regression:
        return {"predictions": _unscale_output(ann, fit)}
    predictions = ann.label_encoder.inverse_transform(np.argmax(fit, axis=1))
    probabilities = pd.DataFrame(fit, columns=[f"class_{name}" for name in ann.meta.y_names])
    return {"predictions": predictions, "probabilities": probabilities}


def reconstruct(ann: ANN, X) -> Dict[str, Array]:
    """Reconstruct observations with an autoencoder and report per-row errors."""

    if not ann.autoencoder:
        raise ValueError("Object is not of type autoencoder")
    X_arr, _ = _as_matrix(X, "X")
    _check_columns(X_arr, ann.meta.n_in, "X")
    fit = _unscale_output(ann, ann.network.predict(_standardized_input(ann, X_arr, "X")))
    errors = np.sum((fit - X_arr) ** 2, axis=1) / ann.meta.n_out
    return {"reconstructed": fit, "errors": errors}


def _compression_layer(ann: ANN, compression_layer: Optional[int]) -> int:
    hidden = ann.meta.hidden_layers
    if not hidden:
        raise ConfigurationError("The network has no hidden layer to compress into")
    if compression_layer is None:
        smallest = min(hidden)
        if hidden.count(smallest) > 1:
            raise ConfigurationError("Ambiguous compression layer, specify compression_layer")
        return hidden.index(smallest) + 1
    if not 1 <= int(compression_layer) <= len(hidden):
        raise ConfigurationError(f"compression_layer must be between 1 and {len(hidden)}")
    return int(compression_layer)


def encode(ann: ANN, newdata, compression_layer: Optional[int] = None) -> Array:
    """Activations of the compression layer for each row of ``newdata``.

    ``compression_layer`` is the 1-based index of a hidden layer and defaults
    to the hidden layer with the fewest nodes.
    """

    if not ann.autoencoder:
        warnings.warn("Object is not an autoencoder", UserWarning, stacklevel=2)
    layer = _compression_layer(ann, compression_layer)
    X_std = _standardized_input(ann, newdata, "newdata")
    return ann.network.partial_forward(X_std, 0, layer)


def decode(ann: ANN, compressed, compression_layer: Optional[int] = None) -> Array:
    """Map compression-layer activations back to the output space."""

    if not ann.autoencoder:
        warnings.warn("Object is not an autoencoder", UserWarning, stacklevel=2)
    layer = _compression_layer(ann, compression_layer)
    Z, _ = _as_matrix(compressed, "compressed")
    _check_columns(Z, ann.meta.num_nodes[layer], "compressed")
    fit = ann.network.partial_forward(Z, layer, len(ann.network.layers))
    return _unscale_output(ann, fit)


def plot(ann: ANN, path: str | Path) -> Path:
    """Save the training/validation loss curve of ``ann`` to ``path``."""

    from .reporting.plots import plot_history

    return plot_history(ann.history, path)


def rec_plot(ann: ANN, X, path: str | Path) -> Path:
    """Save a pairwise plot of original rows and their reconstructions."""

    from .reporting.plots import plot_reconstruction

    X_arr, _ = _as_matrix(X, "X")
    rec = reconstruct(ann, X_arr)
    return plot_reconstruction(X_arr, rec["reconstructed"], ann.meta.y_names, path)


__all__ = [
    "ANN",
    "build_model",
    "neuralnetwork",
    "autoencoder",
    "train",
    "predict",
    "reconstruct",
    "encode",
    "decode",
    "plot",
    "rec_plot",
]
