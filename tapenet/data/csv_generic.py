"""Generic CSV loader for classification tasks."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from ..core.errors import DatasetError
from .examples import examples_from_arrays
from .registry import DatasetSpec, register_dataset
from .utils import deterministic_split, standardize


def _load_csv(path: Path, target_col: str) -> tuple[np.ndarray, np.ndarray]:
    try:
        df = pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise DatasetError(f"Could not read CSV file {path}: {exc}") from exc
    if target_col not in df.columns:
        raise DatasetError(f"Target column {target_col!r} not found in {path}")
    y = df.pop(target_col).to_numpy()
    try:
        X = df.to_numpy(dtype=np.float64)
    except ValueError as exc:
        raise DatasetError(f"Non-numeric feature columns in {path}: {exc}") from exc
    return X, y


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    test_split: float = 0.2,
    seed: int = 0,
    standardize_inputs: bool = True,
) -> DatasetSpec:
    """Load a classification dataset from a CSV file."""

    if csv_path is None:
        raise DatasetError("csv_classification requires a csv_path option")
    path = Path(csv_path)
    X, y_raw = _load_csv(path, target_col)
    encoder = LabelEncoder()
    y = encoder.fit_transform(y_raw)
    num_classes = len(encoder.classes_)
    if num_classes < 2:
        raise DatasetError(f"{path} holds a single class in {target_col!r}")

    normalization: dict[str, list[float]] = {}
    if standardize_inputs:
        X, mean, std = standardize(X)
        normalization = {"mean": mean.flatten().tolist(), "std": std.flatten().tolist()}

    splits = deterministic_split(X.shape[0], test_split=test_split, seed=seed)
    provenance = {
        "path": str(path),
        "test_split": test_split,
        "seed": seed,
        "target_col": target_col,
        "classes": [str(c) for c in encoder.classes_.tolist()],
        "normalization": normalization,
    }
    return DatasetSpec(
        name="csv_classification",
        train=examples_from_arrays(X[splits.train], y[splits.train], num_classes),
        test=examples_from_arrays(X[splits.test], y[splits.test], num_classes),
        input_size=int(X.shape[1]),
        categories_count=num_classes,
        provenance=provenance,
    )


__all__ = ["load_csv_classification"]
