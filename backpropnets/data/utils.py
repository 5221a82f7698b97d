"""Index helpers for splitting and batching observations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import numpy as np

from ..core.errors import ConfigurationError


@dataclass(frozen=True)
class SplitIndices:
    """Row indices of the training and validation partitions."""

    train: np.ndarray
    val: np.ndarray

    @property
    def sizes(self) -> dict:
        return {"train": int(self.train.size), "val": int(self.val.size)}


def validation_split(n_samples: int, val_prop: float, rng: np.random.Generator) -> SplitIndices:
    """Hold out ``val_prop`` of ``n_samples`` rows, at least one when positive."""

    if not 0 <= val_prop < 1:
        raise ConfigurationError("val_prop must be in [0, 1)")
    indices = rng.permutation(n_samples)
    val_size = 0
    if val_prop > 0:
        val_size = max(1, int(round(n_samples * val_prop)))
    if n_samples - val_size < 1:
        raise ConfigurationError("Not enough observations left for training after the validation split")
    return SplitIndices(train=np.sort(indices[val_size:]), val=np.sort(indices[:val_size]))


def batch_indices(
    indices: np.ndarray,
    batch_size: int,
    rng: np.random.Generator,
    *,
    drop_last: bool = True,
) -> List[np.ndarray]:
    """Shuffle ``indices`` and cut them into consecutive batches."""

    if batch_size < 1:
        raise ConfigurationError("batch_size must be a positive integer")
    shuffled = rng.permutation(indices)
    batches = [shuffled[start : start + batch_size] for start in range(0, shuffled.size, batch_size)]
    if drop_last and batches and batches[-1].size < batch_size:
        batches.pop()
    return batches


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels] = 1.0
    return out


__all__ = ["SplitIndices", "validation_split", "batch_indices", "one_hot"]
