"""Metric sinks fed by the trainer's step callbacks and split loggers.

Per-step records are keyed by ``"step"`` and per-epoch records by
``"epoch"``, so a step log and an epoch log never share an index column.
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping

from .artifacts import git_sha


class _MetricSink:
    """Truncate ``path`` on creation and append one record per call."""

    def __init__(self, path: str | Path, *, split: str) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        self._append(self._record("step", step, metrics))

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        self._append(self._record("epoch", epoch, metrics))

    def _header(self) -> Dict[str, object]:
        return {"split": self.split}

    def _record(self, key: str, index: int, metrics: Mapping[str, float]) -> Dict[str, object]:
        record: Dict[str, object] = {key: int(index), **self._header()}
        # Strings and flags are not metrics.
        record.update(
            {
                name: float(value)
                for name, value in metrics.items()
                if isinstance(value, (int, float)) and not isinstance(value, bool)
            }
        )
        return record

    def _append(self, record: Mapping[str, object]) -> None:
        raise NotImplementedError


class JsonlSink(_MetricSink):
    """One JSON object per line, tagged with the run seed and git sha."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        super().__init__(path, split=split)
        self.seed = seed
        self.sha = sha or git_sha()

    def _header(self) -> Dict[str, object]:
        return {"split": self.split, "seed": self.seed, "sha": self.sha}

    def _append(self, record: Mapping[str, object]) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = _MetricSink.on_epoch


class CsvSink(_MetricSink):
    """CSV rows whose header is fixed by the first record written."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        super().__init__(path, split=split)
        self._fieldnames: list[str] | None = None

    def _append(self, record: Mapping[str, object]) -> None:
        if self._fieldnames is None:
            self._fieldnames = sorted(record)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._fieldnames, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(record)


__all__ = ["CsvSink", "JsonlSink"]
