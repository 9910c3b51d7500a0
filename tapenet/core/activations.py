"""Activation descriptors for tapenet networks.

Neuron activations are applied to each neuron's weighted sum; layer
activations are applied to a whole layer's activation vector.  The actual
arithmetic lives on :class:`tapenet.core.factory.NumberFactory` so that both
backends evaluate them identically.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

NEURON_ACTIVATIONS = ("none", "relu", "leaky_relu", "sigmoid")
LAYER_ACTIVATIONS = ("none", "softmax")

DEFAULT_LEAK = 0.01


@dataclass(frozen=True)
class Activation:
    """Element-wise neuron activation.

    ``leak`` is only consulted when ``kind == "leaky_relu"``.
    """

    kind: str = "none"
    leak: float = 0.0

    def __post_init__(self) -> None:
        if self.kind not in NEURON_ACTIVATIONS:
            available = ", ".join(NEURON_ACTIVATIONS)
            raise ValueError(f"Unknown neuron activation {self.kind!r}. Available: {available}")
        if not math.isfinite(self.leak):
            raise ValueError(f"Leak must be finite, got {self.leak}")

    @classmethod
    def parse(cls, value: str | Activation | None) -> Activation:
        """Build an activation from ``"relu"``, ``"leaky_relu:0.05"`` and friends."""

        if isinstance(value, Activation):
            return value
        if value is None:
            return cls()
        name, _, arg = str(value).strip().lower().partition(":")
        if name == "leaky_relu":
            return cls("leaky_relu", float(arg) if arg else DEFAULT_LEAK)
        if arg:
            raise ValueError(f"Activation {name!r} does not take an argument")
        return cls(name)

    def __str__(self) -> str:
        if self.kind == "leaky_relu":
            return f"leaky_relu:{self.leak:g}"
        return self.kind


def parse_layer_activation(value: str | None) -> str:
    """Validate a layer activation name."""

    name = "none" if value is None else str(value).strip().lower()
    if name not in LAYER_ACTIVATIONS:
        available = ", ".join(LAYER_ACTIVATIONS)
        raise ValueError(f"Unknown layer activation {name!r}. Available: {available}")
    return name


NONE = Activation()
RELU = Activation("relu")
SIGMOID = Activation("sigmoid")


def leaky_relu(leak: float = DEFAULT_LEAK) -> Activation:
    """Return a leaky ReLU activation with slope ``leak`` for non-positive inputs."""

    return Activation("leaky_relu", float(leak))


__all__ = [
    "Activation",
    "DEFAULT_LEAK",
    "LAYER_ACTIVATIONS",
    "NEURON_ACTIVATIONS",
    "NONE",
    "RELU",
    "SIGMOID",
    "leaky_relu",
    "parse_layer_activation",
]
