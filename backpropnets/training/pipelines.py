"""Config-driven training runs with presets and metric artifacts."""

from __future__ import annotations

import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Mapping, Sequence

from ..core.types import RunResult, TrainParams
from ..data import registry
from ..models import ANN, build_model
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, MetricsCapture
from ..reporting.plots import plot_history
from .metrics import default_metrics
from .trainer import Trainer, resolve_train_params

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "linear-sgd": {
        "data": {"name": "linear", "options": {"n_points": 200, "n_features": 4, "seed": 0}},
        "model": {
            "kind": "neuralnetwork",
            "hidden": [2],
            "activation": "tanh",
            "loss": "squared",
            "optimizer": "sgd",
            "learn_rates": 0.01,
            "momentum": 0.0,
        },
        "train": {
            "n_epochs": 200,
            "batch_size": 32,
            "val_prop": 0.1,
            "drop_last": True,
            "seed": 7,
            "run_dir": "runs/linear-sgd",
            "enable_plots": False,
        },
    },
    "blobs-adam": {
        "data": {"name": "blobs", "options": {"n_points": 150, "n_classes": 3, "seed": 0}},
        "model": {
            "kind": "neuralnetwork",
            "hidden": [8],
            "activation": "relu",
            "loss": "log",
            "optimizer": "adam",
            "learn_rates": 0.01,
        },
        "train": {
            "n_epochs": 50,
            "batch_size": 16,
            "val_prop": 0.2,
            "patience": 10,
            "seed": 1,
            "run_dir": "runs/blobs-adam",
            "enable_plots": False,
        },
    },
    "linear-autoencoder": {
        "data": {"name": "linear", "options": {"n_points": 200, "n_features": 4, "seed": 3}},
        "model": {
            "kind": "autoencoder",
            "hidden": [3, 2, 3],
            "activation": "tanh",
            "loss": "squared",
            "optimizer": "rmsprop",
            "learn_rates": 0.005,
        },
        "train": {
            "n_epochs": 60,
            "batch_size": 20,
            "val_prop": 0.1,
            "seed": 3,
            "run_dir": "runs/linear-autoencoder",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"

# model config key -> build_model keyword
_MODEL_KEYS = {
    "hidden": "hidden_layers",
    "regression": "regression",
    "standardize": "standardize",
    "loss": "loss_type",
    "huber_delta": "huber_delta",
    "activation": "activ_functions",
    "step_h": "step_H",
    "step_k": "step_k",
    "optimizer": "optim_type",
    "learn_rates": "learn_rates",
    "l1": "L1",
    "l2": "L2",
    "momentum": "sgd_momentum",
    "decay": "rmsprop_decay",
    "beta1": "adam_beta1",
    "beta2": "adam_beta2",
}

# train config keys consumed by the pipeline rather than TrainParams
_RUN_KEYS = {"seed", "run_dir", "enable_plots", "metrics"}


def read_config_file(path: str | Path) -> Mapping[str, object]:
    """Load a JSON or YAML mapping."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")
    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    presets: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return presets
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = read_config_file(file)
        missing = {"data", "model", "train"} - set(data)
        if missing:
            raise KeyError(
                f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
            )
        presets[file.stem] = json.loads(json.dumps(data))
    return presets


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset: {name}")
    return available[name]


def split_train_config(train_cfg: Mapping[str, object]) -> TrainParams:
    """Extract and validate the :class:`TrainParams` part of a train section."""

    return resolve_train_params({k: v for k, v in train_cfg.items() if k not in _RUN_KEYS})


def build_from_config(model_cfg: Mapping[str, object], dataset: registry.Dataset, seed: int):
    """Construct an untrained model for ``dataset`` from a model section."""

    kind = str(model_cfg.get("kind", "neuralnetwork"))
    if kind not in {"neuralnetwork", "autoencoder"}:
        raise ValueError(f"Unknown model kind: {kind}")
    unknown = set(model_cfg) - set(_MODEL_KEYS) - {"kind"}
    if unknown:
        raise KeyError(f"Unknown model settings: {sorted(unknown)}")
    kwargs = {_MODEL_KEYS[key]: value for key, value in model_cfg.items() if key != "kind"}
    kwargs.setdefault("regression", dataset.regression)
    autoencoder = kind == "autoencoder"
    return build_model(
        dataset.X,
        None if autoencoder else dataset.Y,
        autoencoder=autoencoder,
        random_state=seed,
        **kwargs,
    )


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    seed = int(train_cfg.get("seed", 0))
    params = split_train_config(train_cfg)
    ann, X_std, Y_std = build_from_config(model_cfg, dataset, seed)

    metric_names = train_cfg.get("metrics", "default")
    if metric_names == "default":
        metric_names = default_metrics(ann.meta.regression)
    elif isinstance(metric_names, str):
        metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]

    run_dir = _resolve_run_dir(train_cfg, dataset.name, str(model_cfg.get("kind", "neuralnetwork")))
    run_dir.mkdir(parents=True, exist_ok=True)
    _print_startup_summary(dataset.name, ann, params, list(metric_names))

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    capture = MetricsCapture()
    trainer = Trainer(
        ann.network,
        callbacks=[jsonl, csv_sink, capture],
        metric_names=metric_names,
        verbose=True,
    )
    trainer.train(X_std, Y_std, params)
    history = ann.history

    if train_cfg.get("enable_plots", False):
        plot_history(history, run_dir / "loss.png")

    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        history=history,
    )
    (run_dir / "config.json").write_text(json.dumps(config, indent=2, default=str))
    logger.info("Run artifacts written to %s", run_dir)
    return RunResult(
        epochs=len(history),
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        final_loss=history[-1].train_loss,
        extra={"stopped_early": trainer.stopped_early, "best_epoch": trainer.best_epoch},
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, kind: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset / kind


def _print_startup_summary(
    dataset_name: str, ann: ANN, params: TrainParams, metrics: Sequence[str]
) -> None:
    network = ann.network
    print("=== backpropnets run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Nodes         : {list(network.meta.num_nodes)}")
    print(f"Activations   : {[layer.activation.name for layer in network.layers]}")
    print(f"Loss          : {network.loss.name}")
    print(f"Optimizer     : {network.layers[0].optimizer.params.kind}")
    print(f"Metrics       : {', '.join(metrics)}")
    print(f"Epochs        : {params.n_epochs} (batch size {params.batch_size})")
    print(f"Parameters    : {network.parameter_count()}")
    print("========================")


__all__ = [
    "run_pipeline",
    "load_preset",
    "presets",
    "read_config_file",
    "build_from_config",
    "split_train_config",
]
