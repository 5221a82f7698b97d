"""Core typing contracts for backpropnets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

Array = np.ndarray


@dataclass(frozen=True)
class ActivationParams:
    """Activation kind plus the parameters of the smoothed step function."""

    kind: str = "tanh"
    step_h: int = 5
    step_k: float = 100.0


@dataclass(frozen=True)
class LossParams:
    """Loss kind and the Huber cutoff used by ``huber``/``pseudo_huber``."""

    kind: str = "squared"
    huber_delta: float = 1.0


@dataclass(frozen=True)
class OptimizerParams:
    """Optimizer hyperparameters, fixed at network construction."""

    kind: str = "sgd"
    learn_rate: float = 1e-4
    l1: float = 0.0
    l2: float = 0.0
    momentum: float = 0.9
    decay: float = 0.9
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-8


@dataclass(frozen=True)
class TrainParams:
    """Settings for a single call to :meth:`Trainer.train`.

    Attributes
    ----------
    n_epochs:
        Number of passes over the training observations.
    batch_size:
        Observations per batch.
    val_prop:
        Proportion of the data held out for validation. Sampled once per call.
    drop_last:
        Discard an incomplete final batch instead of training on it.
    patience:
        Epochs without improvement before early stopping. ``None`` disables it.
    min_delta:
        Minimum decrease of the monitored loss that counts as improvement.
    """

    n_epochs: int = 100
    batch_size: int = 32
    val_prop: float = 0.1
    drop_last: bool = True
    patience: Optional[int] = None
    min_delta: float = 0.0


@dataclass(frozen=True)
class HistoryRecord:
    """One epoch of training history."""

    epoch: int
    batch: int
    train_loss: float
    val_loss: Optional[float] = None


@dataclass(frozen=True)
class ModelMeta:
    """Structural description of a network and the data it was built for."""

    n_in: int
    n_out: int
    num_nodes: Tuple[int, ...]
    regression: bool = True
    y_names: Tuple[str, ...] = ()
    x_names: Tuple[str, ...] = ()
    autoencoder: bool = False

    @property
    def n_hidden(self) -> int:
        return len(self.num_nodes) - 2

    @property
    def hidden_layers(self) -> Tuple[int, ...]:
        return tuple(self.num_nodes[1:-1])


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`backpropnets.training.pipelines.run_pipeline`."""

    epochs: int
    metrics_path: str
    manifest_path: str
    final_loss: float = float("nan")
    extra: dict = field(default_factory=dict)
