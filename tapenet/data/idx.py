"""MNIST in the IDX binary format, with a deterministic offline fixture.

Label files start with two zero bytes, the element type ``0x08`` (unsigned
byte), the dimension count ``0x01`` and a big-endian ``uint32`` item count.
Image files use dimension count ``0x03`` followed by big-endian item count,
row count and column count.  Pixels are scaled to ``[0, 1]``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np

from ..core.errors import DatasetError
from .examples import examples_from_arrays
from .registry import DatasetSpec, register_dataset
from .utils import resolve_data_dir

UNSIGNED_BYTE = 0x08
MNIST_CLASSES = 10
MNIST_FILES = {
    "train": ("train-images.idx3-ubyte", "train-labels.idx1-ubyte"),
    "test": ("t10k-images.idx3-ubyte", "t10k-labels.idx1-ubyte"),
}


def _read_header(path: Path, dimensions: int) -> Tuple[bytes, Tuple[int, ...]]:
    try:
        data = Path(path).read_bytes()
    except OSError as exc:
        raise DatasetError(f"Could not read IDX file {path}: {exc}") from exc
    header_size = 4 + 4 * dimensions
    if len(data) < header_size:
        raise DatasetError(f"{path} is too short to hold an IDX header")
    if data[2] != UNSIGNED_BYTE:
        raise DatasetError(f"{path}: expected element type 0x08, found 0x{data[2]:02x}")
    if data[3] != dimensions:
        raise DatasetError(f"{path}: expected {dimensions} dimensions, found {data[3]}")
    shape = tuple(int.from_bytes(data[4 + 4 * i : 8 + 4 * i], "big") for i in range(dimensions))
    return data[header_size:], shape


def read_idx_labels(path: str | Path) -> np.ndarray:
    """Return the labels stored in an IDX1 file."""

    body, (count,) = _read_header(Path(path), 1)
    labels = np.frombuffer(body, dtype=np.uint8)
    if labels.size != count:
        raise DatasetError(f"{path}: header announces {count} labels, found {labels.size}")
    return labels.astype(np.int64)


def read_idx_images(path: str | Path) -> np.ndarray:
    """Return the images stored in an IDX3 file as ``(count, rows * cols)`` floats."""

    body, (count, rows, cols) = _read_header(Path(path), 3)
    pixels = np.frombuffer(body, dtype=np.uint8)
    if pixels.size != count * rows * cols:
        raise DatasetError(
            f"{path}: header announces {count}x{rows}x{cols} pixels, found {pixels.size}"
        )
    return pixels.reshape(count, rows * cols).astype(np.float64) / 255.0


def load_idx_split(images_path: str | Path, labels_path: str | Path) -> Tuple[np.ndarray, np.ndarray]:
    images = read_idx_images(images_path)
    labels = read_idx_labels(labels_path)
    if images.shape[0] != labels.shape[0]:
        raise DatasetError(
            f"{images_path} holds {images.shape[0]} images but {labels_path} holds {labels.shape[0]} labels"
        )
    return images, labels


def _offline_dataset(n_samples: int, seed: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return a deterministic MNIST-shaped dataset with one prototype per class."""

    rng = np.random.default_rng(seed)
    prototypes = rng.random((MNIST_CLASSES, 28 * 28)) < 0.2
    labels = np.arange(n_samples) % MNIST_CLASSES
    rng.shuffle(labels)
    noise = rng.random((n_samples, 28 * 28)) * 0.3
    images = np.clip(prototypes[labels] * 0.8 + noise, 0.0, 1.0)
    return images, labels


@register_dataset("mnist")
def build_mnist(
    *,
    data_dir: str | Path | None = None,
    offline: bool = False,
    max_items: int | None = None,
    max_test_items: int | None = None,
    seed: int = 12345,
    offline_samples: int = 300,
) -> DatasetSpec:
    """Create a :class:`DatasetSpec` for MNIST read from ``data_dir``."""

    if offline:
        images, labels = _offline_dataset(offline_samples, seed)
        cut = int(round(offline_samples * 0.8))
        train_x, train_y = images[:cut], labels[:cut]
        test_x, test_y = images[cut:], labels[cut:]
        provenance: dict[str, object] = {"mode": "offline", "source": "synthetic", "seed": seed}
    else:
        root = resolve_data_dir(data_dir)
        train_x, train_y = load_idx_split(*(root / name for name in MNIST_FILES["train"]))
        test_x, test_y = load_idx_split(*(root / name for name in MNIST_FILES["test"]))
        provenance = {"mode": "idx", "path": str(root)}

    if max_items is not None:
        train_x, train_y = train_x[:max_items], train_y[:max_items]
    if max_test_items is not None:
        test_x, test_y = test_x[:max_test_items], test_y[:max_test_items]
    provenance.update({"max_items": max_items, "max_test_items": max_test_items})

    return DatasetSpec(
        name="mnist",
        train=examples_from_arrays(train_x, train_y, MNIST_CLASSES),
        test=examples_from_arrays(test_x, test_y, MNIST_CLASSES),
        input_size=int(train_x.shape[1]),
        categories_count=MNIST_CLASSES,
        provenance=provenance,
    )


__all__ = ["build_mnist", "load_idx_split", "read_idx_images", "read_idx_labels"]
