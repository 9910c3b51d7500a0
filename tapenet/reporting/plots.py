"""Headless-safe, non-blocking plotting sink."""

from __future__ import annotations

import queue
import threading
import warnings
from pathlib import Path
from typing import Dict, List, Tuple

from ..core.types import DataPoint

_POLL_SECONDS = 0.05


class PlotSink:
    """Collect :class:`DataPoint` values over a bounded queue.

    :meth:`submit` never blocks: when the queue is full the point is dropped
    and counted.  A daemon thread moves queued points into per-series history
    while training runs; :meth:`close` stops it, drains what is left and
    renders one PNG per series with matplotlib.
    """

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, capacity: int = 4096):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.dropped = 0
        self._queue: "queue.Queue[DataPoint]" = queue.Queue(maxsize=max(1, int(capacity)))
        self._series: Dict[str, List[Tuple[float, float]]] = {}
        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._consumer: threading.Thread | None = None
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)
            self._consumer = threading.Thread(target=self._consume, name="plot-sink", daemon=True)
            self._consumer.start()

    def submit(self, point: DataPoint) -> bool:
        if not self.enable_plots or self._stopped.is_set():
            return False
        try:
            self._queue.put_nowait(point)
        except queue.Full:
            self.dropped += 1
            return False
        return True

    def flush(self) -> None:
        """Block until every submitted point has been recorded."""

        self._queue.join()

    def drain(self) -> Dict[str, List[Tuple[float, float]]]:
        """Record every queued point and return a copy of the per-series history."""

        while True:
            try:
                point = self._queue.get_nowait()
            except queue.Empty:
                break
            self._record(point)
        with self._lock:
            return {name: list(points) for name, points in self._series.items()}

    def close(self) -> List[Path]:
        if not self.enable_plots:
            return []
        self._stopped.set()
        if self._consumer is not None:
            self._consumer.join()
            self._consumer = None
        series = self.drain()
        if self.dropped:
            warnings.warn(
                f"Plot queue was full; dropped {self.dropped} points", RuntimeWarning, stacklevel=2
            )
        if not series:
            return []
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        written: List[Path] = []
        for name, points in sorted(series.items()):
            xs, ys = zip(*points)
            fig, ax = plt.subplots()
            ax.plot(xs, ys)
            ax.set_xlabel("Samples seen")
            ax.set_ylabel(name)
            ax.set_title(name.replace("_", " ").title())
            plot_path = self.run_dir / f"{name}.png"
            fig.savefig(plot_path)
            plt.close(fig)
            written.append(plot_path)
        return written

    # ------------------------------------------------------------------
    # Internal helpers

    def _consume(self) -> None:
        while not self._stopped.is_set():
            try:
                point = self._queue.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue
            self._record(point)

    def _record(self, point: DataPoint) -> None:
        with self._lock:
            self._series.setdefault(point.series_name, []).append((point.x, point.y))
        self._queue.task_done()


__all__ = ["PlotSink"]
