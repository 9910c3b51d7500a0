"""Data-parallel evaluation of batches.

Each task receives a contiguous chunk of the batch, builds its own backend
instance and evaluates its samples one by one, resetting the tape after each
sample.  Chunk results are merged with :meth:`BatchResult.merge`, which is
the only synchronisation point.
"""

from __future__ import annotations

import multiprocessing as mp
from typing import List, Sequence, Tuple

import numpy as np

from ..core.errors import EmptyInputError
from ..core.factory import get_backend
from ..core.network import ParameterizedNetwork
from ..core.types import BatchResult, ClassificationExample

_Task = Tuple[ParameterizedNetwork, str, Sequence[ClassificationExample], np.random.SeedSequence, bool]


def _evaluate_chunk(task: _Task) -> BatchResult:
    """Worker function evaluating one chunk with a private backend."""

    network, backend, examples, seed, predict = task
    factory = get_backend(backend)
    rng = np.random.default_rng(seed)
    results: List[BatchResult] = []
    for example in examples:
        try:
            results.append(network.evaluate(factory, example, predict=predict, rng=rng))
        finally:
            factory.reset()
    return BatchResult.merge(results)


def split_chunks(items: Sequence, parts: int) -> List[Sequence]:
    """Split ``items`` into at most ``parts`` contiguous, near-equal chunks."""

    parts = max(1, min(int(parts), len(items)))
    bounds = np.linspace(0, len(items), parts + 1).round().astype(int)
    return [items[start:stop] for start, stop in zip(bounds[:-1], bounds[1:]) if stop > start]


class BatchEvaluator:
    """Evaluate batches serially or over a process pool created once per run."""

    def __init__(self, workers: int = 1, backend: str = "tape", seed: int = 0) -> None:
        get_backend(backend)
        self.workers = max(1, int(workers))
        self.backend = backend
        self._seeds = np.random.SeedSequence(seed)
        self._pool = None

    def __enter__(self) -> "BatchEvaluator":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def open(self) -> None:
        if self.workers > 1 and self._pool is None:
            self._pool = mp.Pool(self.workers)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.close()
            self._pool.join()
            self._pool = None

    def evaluate(
        self,
        network: ParameterizedNetwork,
        examples: Sequence[ClassificationExample],
        *,
        predict: bool = False,
        backend: str | None = None,
    ) -> BatchResult:
        """Return the merged result of every example in ``examples``."""

        if len(examples) == 0:
            raise EmptyInputError("Cannot evaluate an empty batch")
        backend = backend or self.backend
        chunks = split_chunks(examples, self.workers)
        seeds = self._seeds.spawn(len(chunks))
        tasks: List[_Task] = [
            (network, backend, chunk, seed, predict) for chunk, seed in zip(chunks, seeds)
        ]
        if self._pool is None:
            results = [_evaluate_chunk(task) for task in tasks]
        else:
            results = self._pool.map(_evaluate_chunk, tasks)
        return BatchResult.merge(results)


__all__ = ["BatchEvaluator", "split_chunks"]
