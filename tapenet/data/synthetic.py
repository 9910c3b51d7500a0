"""Pure in-memory synthetic classification datasets."""

from __future__ import annotations

import numpy as np

from .examples import examples_from_arrays
from .registry import DatasetSpec, register_dataset
from .utils import deterministic_split


def _make_blobs(
    n_samples: int, n_features: int, n_classes: int, spread: float, seed: int
) -> tuple[np.ndarray, np.ndarray]:
    rng = np.random.default_rng(seed)
    centers = rng.uniform(-1.0, 1.0, size=(n_classes, n_features))
    labels = np.arange(n_samples) % n_classes
    rng.shuffle(labels)
    features = centers[labels] + spread * rng.standard_normal((n_samples, n_features))
    return features, labels


@register_dataset("blobs")
def build_blobs(
    *,
    n_samples: int = 240,
    n_features: int = 2,
    n_classes: int = 3,
    spread: float = 0.15,
    seed: int = 0,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Gaussian clusters around uniformly drawn centres."""

    if n_classes < 2:
        raise ValueError("blobs needs at least two classes")
    x, y = _make_blobs(n_samples, n_features, n_classes, spread, seed)
    splits = deterministic_split(x.shape[0], test_split=test_split, seed=seed)
    return DatasetSpec(
        name="blobs",
        train=examples_from_arrays(x[splits.train], y[splits.train], n_classes),
        test=examples_from_arrays(x[splits.test], y[splits.test], n_classes),
        input_size=n_features,
        categories_count=n_classes,
        provenance={
            "type": "synthetic",
            "n_samples": n_samples,
            "n_features": n_features,
            "n_classes": n_classes,
            "spread": spread,
            "seed": seed,
            "test_split": test_split,
        },
    )


def max_pairwise_difference(values: np.ndarray) -> float:
    values = np.asarray(values, dtype=np.float64)
    if values.size < 2:
        return 0.0
    return float(values.max() - values.min())


@register_dataset("spread")
def build_spread(
    *,
    n_samples: int = 200,
    n_features: int = 2,
    threshold: float = 0.8,
    seed: int = 0,
    test_split: float = 0.2,
) -> DatasetSpec:
    """Binary task: class 1 when the features differ by more than ``threshold``."""

    rng = np.random.default_rng(seed)
    x = rng.random((n_samples, n_features))
    y = np.array([1 if max_pairwise_difference(row) > threshold else 0 for row in x])
    splits = deterministic_split(n_samples, test_split=test_split, seed=seed)
    return DatasetSpec(
        name="spread",
        train=examples_from_arrays(x[splits.train], y[splits.train], 2),
        test=examples_from_arrays(x[splits.test], y[splits.test], 2),
        input_size=n_features,
        categories_count=2,
        provenance={
            "type": "synthetic",
            "n_samples": n_samples,
            "n_features": n_features,
            "threshold": threshold,
            "seed": seed,
            "test_split": test_split,
        },
    )


__all__ = ["build_blobs", "build_spread", "max_pairwise_difference"]
