"""Metric helpers reported alongside the training loss."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(regression: bool) -> List[str]:
    if regression:
        return ["mae", "rmse", "r2"]
    return ["accuracy"]


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    if key == "mae":
        value = float(np.mean(np.abs(predictions - targets)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((predictions - targets) ** 2)))
    elif key == "r2":
        mean = np.mean(targets, axis=0, keepdims=True)
        ss_res = float(np.sum((targets - predictions) ** 2))
        ss_tot = float(np.sum((targets - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / (ss_tot + 1e-9))
    elif key == "accuracy":
        value = float(np.mean(np.argmax(predictions, axis=1) == np.argmax(targets, axis=1)))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(names: Iterable[str], predictions: Array, targets: Array) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "default_metrics", "compute_metric", "compute_metrics"]
