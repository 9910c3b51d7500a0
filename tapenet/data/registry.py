"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Sequence

from ..core.types import ClassificationExample


@dataclass(frozen=True)
class DatasetSpec:
    """A loaded dataset split into training and test examples.

    Attributes
    ----------
    input_size:
        Length of every example's input vector.
    categories_count:
        Number of classes; every example's one-hot label has this length.
    provenance:
        Free-form metadata recorded in the run manifest so experiments stay
        reproducible.
    """

    name: str
    train: Sequence[ClassificationExample]
    test: Sequence[ClassificationExample]
    input_size: int
    categories_count: int
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("blobs")
        def make_blobs(**kwargs):
            ...

    or directly::

        register_dataset("blobs", make_blobs)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(dataset: str, /, **options: Any) -> DatasetSpec:
    """Build and validate the dataset registered as ``dataset``.

    Raises ``KeyError`` for unknown names.  Loading failures surface as
    :class:`tapenet.core.errors.DatasetError` from the factory.
    """

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset: {dataset}. Available: {available}")
    spec = _REGISTRY[dataset](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.input_size <= 0:
        raise ValueError(f"Dataset {spec.name!r} has non-positive input size")
    if spec.categories_count < 2:
        raise ValueError(f"Dataset {spec.name!r} needs at least two categories")
    if not spec.train:
        raise ValueError(f"Dataset {spec.name!r} has an empty training split")
    for split, examples in (("train", spec.train), ("test", spec.test)):
        for example in examples[:1]:
            if len(example.get_input()) != spec.input_size:
                raise ValueError(
                    f"{spec.name}/{split} examples have {len(example.get_input())} features, "
                    f"expected {spec.input_size}"
                )
            if example.get_categories_count() != spec.categories_count:
                raise ValueError(f"{spec.name}/{split} examples disagree on category count")


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
