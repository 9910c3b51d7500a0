"""Training loops, schedules and pipelines."""

from .parallel import BatchEvaluator
from .schedule import SampleWindow, TrainingSchedule
from .trainer import BatchTrainer

__all__ = ["BatchEvaluator", "BatchTrainer", "SampleWindow", "TrainingSchedule"]
