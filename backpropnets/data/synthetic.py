"""Pure in-memory synthetic datasets."""

from __future__ import annotations

import numpy as np

from .registry import Dataset, register_dataset


def make_linear(
    n_points: int = 200,
    n_features: int = 4,
    noise: float = 0.1,
    seed: int = 0,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``X``, ``y`` and the true coefficients of a noisy linear model."""

    rng = np.random.default_rng(seed)
    X = rng.standard_normal((n_points, n_features))
    coef = rng.uniform(-1.0, 1.0, size=(n_features, 1))
    y = X @ coef + noise * rng.standard_normal((n_points, 1))
    return X, y, coef


def make_blobs(
    n_points: int = 150,
    n_classes: int = 3,
    n_features: int = 2,
    spread: float = 0.4,
    seed: int = 0,
) -> tuple[np.ndarray, np.ndarray]:
    """Gaussian clusters with string labels ``class_0``, ``class_1``, ..."""

    rng = np.random.default_rng(seed)
    centers = rng.uniform(-3.0, 3.0, size=(n_classes, n_features))
    labels = np.arange(n_points) % n_classes
    X = centers[labels] + spread * rng.standard_normal((n_points, n_features))
    y = np.array([f"class_{label}" for label in labels], dtype=object).reshape(-1, 1)
    order = rng.permutation(n_points)
    return X[order], y[order]


@register_dataset("linear")
def load_linear(
    n_points: int = 200, n_features: int = 4, noise: float = 0.1, seed: int = 0
) -> Dataset:
    X, y, coef = make_linear(n_points=n_points, n_features=n_features, noise=noise, seed=seed)
    return Dataset(
        name="linear",
        X=X,
        Y=y,
        regression=True,
        x_names=tuple(f"x{i}" for i in range(n_features)),
        y_names=("y",),
        provenance={
            "type": "synthetic",
            "n_points": n_points,
            "noise": noise,
            "seed": seed,
            "coef": coef.ravel().tolist(),
        },
    )


@register_dataset("blobs")
def load_blobs(
    n_points: int = 150,
    n_classes: int = 3,
    n_features: int = 2,
    spread: float = 0.4,
    seed: int = 0,
) -> Dataset:
    X, y = make_blobs(
        n_points=n_points, n_classes=n_classes, n_features=n_features, spread=spread, seed=seed
    )
    return Dataset(
        name="blobs",
        X=X,
        Y=y,
        regression=False,
        x_names=tuple(f"x{i}" for i in range(n_features)),
        y_names=("label",),
        provenance={"type": "synthetic", "n_points": n_points, "n_classes": n_classes, "seed": seed},
    )


__all__ = ["make_linear", "make_blobs", "load_linear", "load_blobs"]
