from pathlib import Path

import numpy as np
import pytest

from tapenet.core.errors import DatasetError
from tapenet.data import available_datasets, get_dataset
from tapenet.data.idx import read_idx_images, read_idx_labels
from tapenet.data.synthetic import max_pairwise_difference
from tapenet.data.utils import deterministic_split


def _write_idx(path: Path, array: np.ndarray, element_type: int = 0x08) -> None:
    header = bytes([0, 0, element_type, array.ndim])
    header += b"".join(int(dim).to_bytes(4, "big") for dim in array.shape)
    path.write_bytes(header + array.astype(np.uint8).tobytes())


def _write_mnist(root: Path, train: int = 6, test: int = 3) -> None:
    rng = np.random.default_rng(0)
    for prefix, count in (("train", train), ("t10k", test)):
        images = rng.integers(0, 256, size=(count, 4, 4))
        images[0, 0, 0] = 255
        labels = np.arange(count) % 10
        _write_idx(root / f"{prefix}-images.idx3-ubyte", images)
        _write_idx(root / f"{prefix}-labels.idx1-ubyte", labels)


def test_registry_lists_builtin_datasets():
    assert {"blobs", "spread", "mnist", "csv_classification"} <= set(available_datasets())
    with pytest.raises(KeyError):
        get_dataset("imagenet")


def test_blobs_is_deterministic():
    first = get_dataset("blobs", n_samples=60, seed=4)
    second = get_dataset("blobs", n_samples=60, seed=4)

    assert first.splits == {"train": 48, "test": 12}
    assert first.input_size == 2
    np.testing.assert_array_equal(first.train[0].get_input(), second.train[0].get_input())
    assert first.train[0].get_expected_one_hot() == second.train[0].get_expected_one_hot()


def test_spread_labels_follow_threshold():
    dataset = get_dataset("spread", n_samples=40, threshold=0.5, seed=2)
    for example in dataset.train:
        features = np.asarray(example.get_input())
        expected = 1 if max_pairwise_difference(features) > 0.5 else 0
        assert example.get_category() == expected


def test_idx_reader_scales_pixels(tmp_path):
    _write_mnist(tmp_path)
    images = read_idx_images(tmp_path / "train-images.idx3-ubyte")
    labels = read_idx_labels(tmp_path / "train-labels.idx1-ubyte")

    assert images.shape == (6, 16)
    assert images[0, 0] == pytest.approx(1.0)
    assert images.min() >= 0.0 and images.max() <= 1.0
    assert labels.tolist() == [0, 1, 2, 3, 4, 5]


def test_mnist_from_idx_directory(tmp_path):
    _write_mnist(tmp_path)
    dataset = get_dataset("mnist", data_dir=tmp_path, max_items=4)

    assert dataset.input_size == 16
    assert dataset.categories_count == 10
    assert dataset.splits == {"train": 4, "test": 3}
    assert dataset.provenance["mode"] == "idx"
    assert dataset.test[2].get_expected_one_hot()[2] == 1.0


def test_mnist_data_dir_from_environment(tmp_path, monkeypatch):
    _write_mnist(tmp_path)
    monkeypatch.setenv("TAPENET_DATA_DIR", str(tmp_path))
    assert get_dataset("mnist").splits["train"] == 6


def test_idx_errors_raise_dataset_error(tmp_path):
    with pytest.raises(DatasetError):
        get_dataset("mnist", data_dir=tmp_path / "missing")

    bad = tmp_path / "bad-labels.idx1-ubyte"
    _write_idx(bad, np.arange(3), element_type=0x0D)
    with pytest.raises(DatasetError):
        read_idx_labels(bad)

    truncated = tmp_path / "short-images.idx3-ubyte"
    truncated.write_bytes(bytes([0, 0, 0x08, 3]) + (5).to_bytes(4, "big"))
    with pytest.raises(DatasetError):
        read_idx_images(truncated)

    _write_mnist(tmp_path)
    _write_idx(tmp_path / "t10k-labels.idx1-ubyte", np.arange(2))
    with pytest.raises(DatasetError):
        get_dataset("mnist", data_dir=tmp_path)


def test_mnist_offline_fixture_is_deterministic():
    first = get_dataset("mnist", offline=True, offline_samples=50, seed=3)
    second = get_dataset("mnist", offline=True, offline_samples=50, seed=3)

    assert first.splits == {"train": 40, "test": 10}
    assert first.input_size == 28 * 28
    np.testing.assert_array_equal(first.test[0].get_input(), second.test[0].get_input())


def test_csv_classification_encodes_labels(tmp_path):
    path = tmp_path / "data.csv"
    rows = ["a,b,label"] + [f"{i},{i * 2 % 7},{'yes' if i % 2 else 'no'}" for i in range(20)]
    path.write_text("\n".join(rows) + "\n")

    dataset = get_dataset("csv_classification", csv_path=str(path), target_col="label", seed=1)

    assert dataset.input_size == 2
    assert dataset.categories_count == 2
    assert dataset.provenance["classes"] == ["no", "yes"]
    assert sum(dataset.splits.values()) == 20


def test_csv_classification_errors(tmp_path):
    with pytest.raises(DatasetError):
        get_dataset("csv_classification")
    with pytest.raises(DatasetError):
        get_dataset("csv_classification", csv_path=str(tmp_path / "absent.csv"))

    path = tmp_path / "data.csv"
    path.write_text("a,b\n1,2\n3,4\n")
    with pytest.raises(DatasetError):
        get_dataset("csv_classification", csv_path=str(path), target_col="label")

    single = tmp_path / "single.csv"
    single.write_text("a,target\n1,x\n2,x\n3,x\n")
    with pytest.raises(DatasetError):
        get_dataset("csv_classification", csv_path=str(single))


def test_deterministic_split_keeps_a_test_sample():
    splits = deterministic_split(5, test_split=0.01, seed=0)
    assert splits.sizes == {"train": 4, "test": 1}
    assert sorted(np.concatenate([splits.train, splits.test]).tolist()) == list(range(5))
