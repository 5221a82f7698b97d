"""Dataset registry and loader helpers."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .registry import Dataset, available_datasets, get_dataset, register_dataset

__all__ = ["Dataset", "available_datasets", "get_dataset", "register_dataset"]
