"""Concrete classification examples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..core.types import Array, ClassificationExample


@dataclass(frozen=True)
class LabeledExample(ClassificationExample):
    """Feature vector with an integer class label."""

    features: Array
    category: int
    categories_count: int

    def __post_init__(self) -> None:
        if not 0 <= int(self.category) < int(self.categories_count):
            raise ValueError(
                f"Category {self.category} outside [0, {self.categories_count})"
            )
        object.__setattr__(self, "features", np.asarray(self.features, dtype=np.float64).reshape(-1))

    def get_input(self) -> Sequence[float]:
        return self.features

    def get_category(self) -> int:
        return int(self.category)

    def get_categories_count(self) -> int:
        return int(self.categories_count)


def examples_from_arrays(
    features: Array, labels: Array, categories_count: int
) -> List[LabeledExample]:
    """Pair each row of ``features`` with the matching entry of ``labels``."""

    features = np.asarray(features, dtype=np.float64)
    labels = np.asarray(labels).reshape(-1)
    if features.shape[0] != labels.shape[0]:
        raise ValueError(
            f"{features.shape[0]} feature rows but {labels.shape[0]} labels"
        )
    flat = features.reshape(features.shape[0], -1)
    return [
        LabeledExample(features=row, category=int(label), categories_count=categories_count)
        for row, label in zip(flat, labels)
    ]


__all__ = ["LabeledExample", "examples_from_arrays"]
