"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

import numpy as np


@dataclass(frozen=True)
class Dataset:
    """In-memory dataset handed to the training core.

    Attributes
    ----------
    X:
        Feature matrix, one row per observation.
    Y:
        Target matrix. Classification targets are raw labels in a single
        column; one-hot encoding happens when the model is built.
    regression:
        ``True`` for real-valued targets.
    x_names, y_names:
        Column names, kept for reporting.
    provenance:
        Free-form description of how the data was produced.
    """

    name: str
    X: np.ndarray
    Y: np.ndarray
    regression: bool
    x_names: Tuple[str, ...] = ()
    y_names: Tuple[str, ...] = ()
    provenance: Dict[str, Any] = field(default_factory=dict)


DatasetFactory = Callable[..., Dataset]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("blobs")
        def make_blobs(**kwargs):
            ...

    or directly::

        register_dataset("blobs", make_blobs)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(name: str, **options: Any) -> Dataset:
    """Build the dataset registered under ``name``."""

    if name not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}")
    dataset = _REGISTRY[name](**options)
    _validate(dataset)
    return dataset


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate(dataset: Dataset) -> None:
    if dataset.X.ndim != 2 or dataset.Y.ndim != 2:
        raise ValueError(f"Dataset {dataset.name!r} must provide 2-D X and Y matrices")
    if dataset.X.shape[0] != dataset.Y.shape[0]:
        raise ValueError(f"Dataset {dataset.name!r} has mismatched row counts")


__all__ = ["Dataset", "available_datasets", "get_dataset", "register_dataset"]
