"""Mini-batch training loop with annealed learning rate and batch size."""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Mapping, Sequence, Tuple

import numpy as np

from ..core.factory import get_backend
from ..core.network import ParameterizedNetwork
from ..core.types import Array, BatchResult, ClassificationExample, DataPoint, RunResult
from .parallel import BatchEvaluator
from .schedule import SampleWindow, TrainingSchedule

Range = Tuple[float, float]


def _as_range(value: float | Sequence[float]) -> Range:
    if isinstance(value, (int, float)):
        return float(value), float(value)
    start, stop = value
    return float(start), float(stop)


def require_trainable_backend(name: str) -> None:
    """Raise ``ValueError`` unless backend ``name`` can produce gradients."""

    if get_backend(name).as_differentiable() is None:
        raise ValueError(f"Backend {name!r} cannot compute gradients and cannot be used for training")


class BatchTrainer:
    """Train a :class:`ParameterizedNetwork` with windowed mini-batches.

    Each batch is evaluated through a :class:`BatchEvaluator`, the merged
    gradient is applied with the schedule's current learning rate, then the
    schedule advances and the batch window is resized.  Test accuracy is
    measured with the plain backend at epoch boundaries.

    ``callbacks`` receive ``on_step(step, metrics)`` after every update;
    ``split_loggers`` receive per-epoch metrics for ``"train"`` and ``"test"``.
    """

    def __init__(
        self,
        network: ParameterizedNetwork,
        evaluator: BatchEvaluator | None = None,
        callbacks: Sequence[object] | None = None,
        plot_sink: object | None = None,
    ) -> None:
        self.network = network
        self.evaluator = evaluator or BatchEvaluator()
        self.callbacks = list(callbacks or [])
        self.plot_sink = plot_sink
        self.schedule: TrainingSchedule | None = None

    def run(
        self,
        train: Sequence[ClassificationExample],
        test: Sequence[ClassificationExample] = (),
        *,
        epochs: int,
        learning_rate: float | Sequence[float],
        batch_size: int | Sequence[int],
        seed: int = 0,
        shuffle: bool = True,
        eval_every: int = 1,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
        checkpoint_dir: str | Path | None = None,
    ) -> RunResult:
        require_trainable_backend(self.evaluator.backend)
        lr_start, lr_stop = _as_range(learning_rate)
        bs_start, bs_stop = _as_range(batch_size)
        schedule = TrainingSchedule(
            epochs=int(epochs),
            training_set_size=len(train),
            initial_learning_rate=lr_start,
            target_learning_rate=lr_stop,
            initial_batch_size=int(bs_start),
            target_batch_size=int(bs_stop),
        )
        self.schedule = schedule
        split_loggers = split_loggers or {}
        rng = np.random.default_rng(seed)
        if not test:
            warnings.warn("No test set provided; skipping test evaluation", RuntimeWarning, stacklevel=2)

        best_accuracy = -1.0
        test_accuracy = 0.0
        total_steps = 0
        order = np.arange(len(train))

        with self.evaluator:
            for epoch in range(1, schedule.epochs + 1):
                if shuffle:
                    order = rng.permutation(len(train))
                samples = [train[i] for i in order]
                window = SampleWindow(samples, schedule.batch_size)
                epoch_results: list[BatchResult] = []
                for batch in window:
                    learning_rate_now = schedule.learning_rate
                    result = self.evaluator.evaluate(self.network, batch)
                    self.network.back_propagate(result.gradient, learning_rate_now)
                    schedule.advance(len(batch))
                    window.resize(schedule.batch_size)
                    total_steps += 1
                    epoch_results.append(result)
                    self._emit_step(
                        total_steps,
                        {
                            "error": result.error,
                            "accuracy": result.accuracy,
                            "learning_rate": learning_rate_now,
                            "batch_size": float(len(batch)),
                        },
                    )
                    self._plot("train_error", schedule.samples_seen, result.error)
                    self._plot("train_accuracy", schedule.samples_seen, result.accuracy)

                merged = BatchResult.merge(epoch_results)
                self._emit_epoch(
                    "train",
                    epoch,
                    {
                        "error": merged.error,
                        "accuracy": merged.accuracy,
                        "learning_rate": schedule.learning_rate,
                        "batch_size": float(schedule.batch_size),
                    },
                    split_loggers,
                )

                if test and epoch % max(1, eval_every) == 0:
                    evaluation = self.evaluate(test)
                    test_accuracy = evaluation.accuracy
                    self._emit_epoch(
                        "test",
                        epoch,
                        {"error": evaluation.error, "accuracy": evaluation.accuracy},
                        split_loggers,
                    )
                    self._plot("test_accuracy", schedule.samples_seen, evaluation.accuracy)
                    if checkpoint_dir is not None and evaluation.accuracy > best_accuracy:
                        best_accuracy = evaluation.accuracy
                        self._save_checkpoint(
                            Path(checkpoint_dir) / "best.ckpt", self.network.state_dict()
                        )

        if checkpoint_dir is not None:
            self._save_checkpoint(Path(checkpoint_dir) / "last.ckpt", self.network.state_dict())
        return RunResult(
            steps=total_steps,
            metrics_path="",
            manifest_path="",
            summary_path="",
            test_accuracy=float(test_accuracy),
        )

    def evaluate(self, examples: Sequence[ClassificationExample]) -> BatchResult:
        """Mean error and accuracy over ``examples`` without gradient work."""

        return self.evaluator.evaluate(self.network, examples, predict=True, backend="plain")

    # ------------------------------------------------------------------
    # Internal helpers

    def _emit_step(self, step: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(step, metrics)  # type: ignore[attr-defined]

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _plot(self, series: str, x: float, y: float) -> None:
        if self.plot_sink is not None:
            self.plot_sink.submit(DataPoint(x=float(x), y=float(y), series_name=series))  # type: ignore[attr-defined]

    @staticmethod
    def _save_checkpoint(path: Path, state: Mapping[str, Array]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as handle:
            np.savez_compressed(handle, **state)


__all__ = ["BatchTrainer", "require_trainable_backend"]
