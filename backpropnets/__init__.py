"""backpropnets public API."""

from .core import activations, optimizers, types  # noqa: F401
from .core.errors import ConfigurationError, ShapeError
from .core.network import Network
from .core.types import (
    ActivationParams,
    HistoryRecord,
    LossParams,
    ModelMeta,
    OptimizerParams,
    TrainParams,
)
from .models import (
    ANN,
    autoencoder,
    decode,
    encode,
    neuralnetwork,
    predict,
    reconstruct,
    train,
)
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "ANN",
    "ActivationParams",
    "ConfigurationError",
    "HistoryRecord",
    "LossParams",
    "ModelMeta",
    "Network",
    "OptimizerParams",
    "ShapeError",
    "TrainParams",
    "Trainer",
    "activations",
    "autoencoder",
    "decode",
    "encode",
    "load_preset",
    "neuralnetwork",
    "optimizers",
    "predict",
    "presets",
    "reconstruct",
    "run_pipeline",
    "train",
    "types",
]
