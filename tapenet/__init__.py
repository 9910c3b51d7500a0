"""tapenet public API."""

from .core import activations, errors, types  # noqa: F401
from .core.factory import PlainFactory, TapeFactory, get_backend
from .core.network import ParameterizedNetwork
from .core.tape import Tape
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import BatchTrainer

__all__ = [
    "BatchTrainer",
    "ParameterizedNetwork",
    "PlainFactory",
    "Tape",
    "TapeFactory",
    "activations",
    "errors",
    "get_backend",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
