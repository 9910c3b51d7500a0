"""Core typing contracts for tapenet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Protocol, Sequence

import numpy as np

from .activations import Activation, parse_layer_activation
from .errors import EmptyInputError, LengthMismatchError

Array = np.ndarray


@dataclass(frozen=True)
class NumberValue:
    """A scalar optionally bound to a tape slot.

    ``slot is None`` marks a constant: it is never recorded on a tape and
    propagates no gradient.  A variable carries only the index of its record,
    never a reference to the tape itself.
    """

    scalar: float
    slot: int | None = None

    @property
    def is_constant(self) -> bool:
        return self.slot is None

    @property
    def is_variable(self) -> bool:
        return self.slot is not None

    def __float__(self) -> float:
        return float(self.scalar)


@dataclass(frozen=True)
class LayerSpec:
    """Immutable description of a fully connected layer."""

    neuron_count: int
    neuron_activation: Activation = field(default_factory=Activation)
    layer_activation: str = "none"
    uses_bias: bool = True
    dropout_rate: float = 0.0

    def __post_init__(self) -> None:
        if int(self.neuron_count) <= 0:
            raise ValueError(f"neuron_count must be positive, got {self.neuron_count}")
        if not 0.0 <= float(self.dropout_rate) < 1.0:
            raise ValueError(f"dropout_rate must be in [0, 1), got {self.dropout_rate}")
        object.__setattr__(self, "neuron_activation", Activation.parse(self.neuron_activation))
        object.__setattr__(self, "layer_activation", parse_layer_activation(self.layer_activation))

    @property
    def bias_flag(self) -> int:
        return 1 if self.uses_bias else 0


@dataclass(frozen=True)
class BatchResult:
    """Error, gradient and accuracy averaged over ``sample_count`` samples."""

    error: float
    gradient: Array
    accuracy: float
    sample_count: int = 1

    @classmethod
    def merge(cls, results: Iterable[BatchResult]) -> BatchResult:
        """Combine results weighted by their sample counts.

        The reduction is associative and commutative: merging per-sample,
        per-worker or per-batch results yields the same averages.
        """

        items = list(results)
        if not items:
            raise EmptyInputError("Cannot merge an empty list of batch results")
        total = sum(int(item.sample_count) for item in items)
        if total <= 0:
            raise EmptyInputError("Batch results carry no samples")
        gradient = np.zeros_like(np.asarray(items[0].gradient, dtype=np.float64))
        error = 0.0
        accuracy = 0.0
        for item in items:
            item_gradient = np.asarray(item.gradient, dtype=np.float64)
            if item_gradient.shape != gradient.shape:
                raise LengthMismatchError(
                    f"Gradient of length {item_gradient.size} cannot merge with {gradient.size}"
                )
            gradient += item_gradient * item.sample_count
            error += item.error * item.sample_count
            accuracy += item.accuracy * item.sample_count
        return cls(
            error=error / total,
            gradient=gradient / total,
            accuracy=accuracy / total,
            sample_count=total,
        )


class ClassificationExample(Protocol):
    """A labelled sample consumed by the network and trainer."""

    def get_input(self) -> Sequence[float]:
        """Return the flattened input features."""

    def get_category(self) -> int:
        """Return the index of the true class."""

    def get_categories_count(self) -> int:
        """Return the number of classes in the task."""

    def get_expected_one_hot(self) -> List[float]:
        expected = [0.0] * self.get_categories_count()
        expected[self.get_category()] = 1.0
        return expected


@dataclass(frozen=True)
class DataPoint:
    """A single point sent to a visualisation sink."""

    x: float
    y: float
    series_name: str


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`tapenet.training.pipelines.run_pipeline`."""

    steps: int
    metrics_path: str
    manifest_path: str
    summary_path: str = ""
    test_accuracy: float = 0.0


@dataclass(frozen=True)
class ForwardPass:
    """Output activations plus the parameter handles used to produce them.

    ``parameter_handles[i]`` corresponds to ``params[i]`` of the network.  It
    is empty when the pass ran without a differentiable backend.
    """

    outputs: List[NumberValue]
    parameter_handles: List[NumberValue]


__all__ = [
    "Array",
    "BatchResult",
    "ClassificationExample",
    "DataPoint",
    "ForwardPass",
    "LayerSpec",
    "NumberValue",
    "RunResult",
]
