"""Dataset registry and loader helpers."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import idx as _idx  # noqa: F401
from . import synthetic as _synthetic  # noqa: F401
from .examples import LabeledExample, examples_from_arrays
from .registry import (
    DatasetSpec,
    available_datasets,
    get_dataset,
    register_dataset,
)

__all__ = [
    "DatasetSpec",
    "LabeledExample",
    "available_datasets",
    "examples_from_arrays",
    "get_dataset",
    "register_dataset",
]
