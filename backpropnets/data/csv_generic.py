"""Generic CSV loaders for regression and classification tasks."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd

from .registry import Dataset, register_dataset


def _load_csv(path: Path, target_col: str) -> tuple[pd.DataFrame, pd.Series]:
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise KeyError(f"Target column {target_col!r} not found in CSV")
    y = df.pop(target_col)
    if df.isna().any().any() or y.isna().any():
        raise ValueError(f"{path} contains missing values")
    non_numeric = [col for col in df.columns if not pd.api.types.is_numeric_dtype(df[col])]
    if non_numeric:
        raise ValueError(f"Non-numeric feature columns in {path}: {non_numeric}")
    return df, y


@register_dataset("csv_regression")
def load_csv_regression(*, csv_path: str | Path, target_col: str = "target") -> Dataset:
    """Load a regression dataset from a CSV file."""

    path = Path(csv_path)
    features, target = _load_csv(path, target_col)
    return Dataset(
        name="csv_regression",
        X=features.to_numpy(dtype=np.float64),
        Y=target.to_numpy(dtype=np.float64).reshape(-1, 1),
        regression=True,
        x_names=tuple(str(c) for c in features.columns),
        y_names=(target_col,),
        provenance={"path": str(path), "target_col": target_col},
    )


@register_dataset("csv_classification")
def load_csv_classification(*, csv_path: str | Path, target_col: str = "target") -> Dataset:
    """Load a classification dataset; labels stay raw until the model encodes them."""

    path = Path(csv_path)
    features, target = _load_csv(path, target_col)
    return Dataset(
        name="csv_classification",
        X=features.to_numpy(dtype=np.float64),
        Y=target.to_numpy().reshape(-1, 1),
        regression=False,
        x_names=tuple(str(c) for c in features.columns),
        y_names=(target_col,),
        provenance={"path": str(path), "target_col": target_col},
    )


__all__ = ["load_csv_regression", "load_csv_classification"]
