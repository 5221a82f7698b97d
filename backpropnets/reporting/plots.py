"""Headless-safe plots of training history and autoencoder reconstructions."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import numpy as np

from ..core.types import HistoryRecord


def _pyplot():
    import matplotlib

    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt  # imported lazily for headless safety

    return plt


def plot_history(history: Sequence[HistoryRecord], path: str | Path) -> Path:
    """Plot training (and validation, when recorded) loss against epochs."""

    if not history:
        raise ValueError("Cannot plot an empty training history")
    plt = _pyplot()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    epochs = [record.epoch for record in history]
    fig, ax = plt.subplots()
    ax.plot(epochs, [record.train_loss for record in history], label="Training")
    val = [record.val_loss for record in history]
    if any(v is not None for v in val):
        ax.plot(epochs, [np.nan if v is None else v for v in val], label="Validation")
    ax.set_xlabel("Epoch")
    ax.set_ylabel("Loss")
    ax.set_title("Training Curve")
    ax.legend()
    fig.savefig(path)
    plt.close(fig)
    return path


def plot_reconstruction(
    original: np.ndarray,
    reconstructed: np.ndarray,
    names: Sequence[str],
    path: str | Path,
) -> Path:
    """Pairwise scatter matrix of original points joined to their reconstructions."""

    if original.shape != reconstructed.shape:
        raise ValueError("original and reconstructed data must have the same shape")
    plt = _pyplot()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    n_col = original.shape[1]
    errors = np.sum((original - reconstructed) ** 2, axis=1)
    fig, axes = plt.subplots(n_col, n_col, figsize=(2.5 * n_col, 2.5 * n_col), squeeze=False)
    for row in range(n_col):
        for col in range(n_col):
            ax = axes[row][col]
            if row == col:
                ax.text(0.5, 0.5, names[row] if row < len(names) else str(row), ha="center")
                ax.set_axis_off()
                continue
            for obs in range(original.shape[0]):
                ax.plot(
                    [original[obs, col], reconstructed[obs, col]],
                    [original[obs, row], reconstructed[obs, row]],
                    color="grey",
                    linewidth=0.5,
                )
            ax.scatter(original[:, col], original[:, row], c=errors, s=8)
            ax.scatter(reconstructed[:, col], reconstructed[:, row], marker="x", s=8, color="black")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


__all__ = ["plot_history", "plot_reconstruction"]
