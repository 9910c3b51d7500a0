"""Annealed hyperparameters and resizable batch windows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Iterator, Sequence, TypeVar

from ..core.errors import EmptyInputError

T = TypeVar("T")


def _lerp(start: float, stop: float, t: float) -> float:
    return start + (stop - start) * t


@dataclass
class TrainingSchedule:
    """Learning rate and batch size interpolated linearly over training.

    Progress is ``samples_seen / (epochs * training_set_size)`` clamped to
    ``[0, 1]``.
    """

    epochs: int
    training_set_size: int
    initial_learning_rate: float
    target_learning_rate: float
    initial_batch_size: int
    target_batch_size: int
    samples_seen: int = 0

    def __post_init__(self) -> None:
        if self.epochs <= 0:
            raise ValueError(f"epochs must be positive, got {self.epochs}")
        if self.training_set_size <= 0:
            raise EmptyInputError("Training set is empty")
        for name in ("initial_learning_rate", "target_learning_rate"):
            value = float(getattr(self, name))
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"{name} must be a non-negative finite number, got {value}")
        for name in ("initial_batch_size", "target_batch_size"):
            if int(getattr(self, name)) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")

    @property
    def total_samples(self) -> int:
        return self.epochs * self.training_set_size

    @property
    def progress(self) -> float:
        return min(1.0, self.samples_seen / self.total_samples)

    @property
    def learning_rate(self) -> float:
        return _lerp(self.initial_learning_rate, self.target_learning_rate, self.progress)

    @property
    def batch_size(self) -> int:
        value = _lerp(self.initial_batch_size, self.target_batch_size, self.progress)
        return max(1, int(round(value)))

    def advance(self, samples: int) -> None:
        """Record that ``samples`` more training samples have been consumed."""

        if samples < 0:
            raise ValueError("Cannot advance by a negative number of samples")
        self.samples_seen += int(samples)


class SampleWindow(Generic[T]):
    """Consecutive, non-overlapping slices whose size may change between slices.

    The final slice is shorter when fewer items remain.
    """

    def __init__(self, items: Sequence[T], size: int) -> None:
        self._items = items
        self._index = 0
        self.resize(size)

    def resize(self, size: int) -> None:
        if int(size) < 1:
            raise ValueError(f"Window size must be at least 1, got {size}")
        self.size = int(size)

    @property
    def remaining(self) -> int:
        return len(self._items) - self._index

    def __iter__(self) -> Iterator[Sequence[T]]:
        return self

    def __next__(self) -> Sequence[T]:
        width = min(self.size, self.remaining)
        if width <= 0:
            raise StopIteration
        window = self._items[self._index : self._index + width]
        self._index += width
        return window


__all__ = ["SampleWindow", "TrainingSchedule"]
