"""Core numerical primitives for tapenet."""

from . import activations, errors, factory, losses, network, tape, types

__all__ = ["activations", "errors", "factory", "losses", "network", "tape", "types"]
