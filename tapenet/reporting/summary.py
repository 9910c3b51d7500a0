"""Deterministic run summaries built from JSONL metrics."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List, Mapping, Sequence

import numpy as np

_SKIPPED_KEYS = {"epoch", "step", "seed"}


def tail_auc(points: Sequence[float]) -> float:
    """Trapezoidal area under ``points`` sampled at unit spacing."""

    if len(points) < 2:
        return 0.0
    y = np.asarray(points, dtype=np.float64)
    return float(np.sum((y[1:] + y[:-1]) * 0.5))


def _read_records(path: Path) -> List[Mapping[str, object]]:
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]


def _series(records: Iterable[Mapping[str, object]]) -> Mapping[str, List[float]]:
    series: dict[str, List[float]] = {}
    for record in records:
        for key, value in record.items():
            if key in _SKIPPED_KEYS or isinstance(value, bool):
                continue
            if isinstance(value, (int, float)):
                series.setdefault(key, []).append(float(value))
    return series


def write_summary(
    metrics_jsonl: str | Path,
    out_summary_json: str | Path,
    *,
    tail: int = 32,
    extra: Mapping[str, object] | None = None,
) -> str:
    """Summarise every numeric metric in ``metrics_jsonl``.

    Each metric gets its min, max, mean, last value and the area under its
    last ``tail`` records.  ``extra`` is copied verbatim into the output.
    """

    records = _read_records(Path(metrics_jsonl))
    window = min(tail, len(records))
    metrics: dict[str, Mapping[str, float]] = {}
    for name, values in _series(records).items():
        arr = np.asarray(values, dtype=np.float64)
        metrics[name] = {
            "min": float(arr.min()),
            "max": float(arr.max()),
            "mean": float(arr.mean()),
            "last": float(arr[-1]),
            "tail_auc": tail_auc(arr[-window:].tolist()) if window else 0.0,
        }

    summary = {
        "version": 1,
        "records": len(records),
        "tail_window": window,
        "metrics": metrics,
        **dict(extra or {}),
    }
    out_path = Path(out_summary_json)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(summary, sort_keys=True, indent=2))
    return str(out_path)


__all__ = ["tail_auc", "write_summary"]
