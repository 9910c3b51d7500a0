import json
from pathlib import Path

import numpy as np
import pytest

from tapenet.core.network import ParameterizedNetwork
from tapenet.data import get_dataset
from tapenet.training import BatchEvaluator, BatchTrainer, pipelines


def _blobs_config(run_dir: Path, **train_overrides):
    config = pipelines.load_preset("blobs-tiny")
    config["data"]["options"].update({"n_samples": 90, "seed": 1})
    config["train"].update({"epochs": 2, "run_dir": str(run_dir), "seed": 11})
    config["train"].update(train_overrides)
    return config


def test_trainer_pipeline_produces_artifacts(tmp_path):
    config = _blobs_config(tmp_path / "run")

    result = pipelines.run_pipeline(config)
    run_dir = Path(config["train"]["run_dir"])

    assert result.steps > 0
    assert Path(result.metrics_path).exists()
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["network"]["parameter_count"] == 2 * 8 + 8 + 8 * 3 + 3

    metrics = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines() if line]
    assert [entry["epoch"] for entry in metrics] == [1, 2]
    assert all(entry["split"] == "train" for entry in metrics)
    assert all({"error", "accuracy", "learning_rate", "sha", "seed"} <= set(entry) for entry in metrics)

    steps = [json.loads(line) for line in (run_dir / "metrics_steps.jsonl").read_text().splitlines()]
    assert [entry["step"] for entry in steps] == list(range(1, result.steps + 1))
    assert all("epoch" not in entry for entry in steps)
    tests = [json.loads(line) for line in (run_dir / "metrics_test.jsonl").read_text().splitlines()]
    assert tests[-1]["accuracy"] == pytest.approx(result.test_accuracy)

    for name in ("metrics.csv", "metrics.jsonl", "config.json", "summary.json", "last.ckpt", "best.ckpt"):
        assert (run_dir / name).exists(), name
    with np.load(run_dir / "last.ckpt") as checkpoint:
        assert checkpoint["params"].shape == (manifest["network"]["parameter_count"],)


def test_pipeline_determinism(tmp_path):
    first = pipelines.run_pipeline(_blobs_config(tmp_path / "run1"))
    second = pipelines.run_pipeline(_blobs_config(tmp_path / "run2"))

    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()
    assert Path(first.summary_path).read_bytes() == Path(second.summary_path).read_bytes()


def test_file_preset_runs_end_to_end(tmp_path):
    config = pipelines.load_preset("spread-sigmoid")
    assert config["model"]["error_function"] == "euclidean_squared"
    config["train"]["run_dir"] = str(tmp_path / "spread")

    result = pipelines.run_pipeline(config)
    assert 0.0 <= result.test_accuracy <= 1.0


def test_build_network_fills_output_layer_from_categories():
    model = {"layers": [{"neurons": 4, "activation": "relu"}, {"layer_activation": "softmax"}]}
    network = pipelines.build_network(model, input_size=3, categories_count=5, seed=0)

    assert network.output_size == 5
    with pytest.raises(ValueError):
        pipelines.build_network({"layers": [{"neurons": 2}]}, input_size=3, categories_count=5, seed=0)
    with pytest.raises(KeyError):
        pipelines.build_network(
            {"error_function": "hinge", "layers": [{"neurons": 5}]}, input_size=3, categories_count=5, seed=0
        )


class _Capture:
    def __init__(self):
        self.records = []

    def on_epoch(self, epoch, metrics):
        self.records.append((epoch, dict(metrics)))


def test_training_reduces_error_on_blobs():
    dataset = get_dataset("blobs", n_samples=150, spread=0.1, seed=2)
    network = ParameterizedNetwork(dataset.input_size)
    rng = np.random.default_rng(0)
    network.add_layer(8, neuron_activation="leaky_relu:0.01", init="xavier", rng=rng)
    network.add_layer(3, layer_activation="softmax", init="xavier", rng=rng)

    train_log = _Capture()
    trainer = BatchTrainer(network, BatchEvaluator(seed=0))
    result = trainer.run(
        dataset.train,
        dataset.test,
        epochs=6,
        learning_rate=(0.5, 0.1),
        batch_size=(4, 8),
        seed=0,
        split_loggers={"train": [train_log]},
    )

    errors = [metrics["error"] for _, metrics in train_log.records]
    assert len(errors) == 6
    assert errors[-1] < errors[0]
    assert result.steps > 0
    assert trainer.schedule.progress == pytest.approx(1.0)


def test_training_without_test_set_warns():
    dataset = get_dataset("spread", n_samples=20, seed=0)
    network = ParameterizedNetwork(2)
    network.add_layer(2, layer_activation="softmax", rng=np.random.default_rng(0))

    with pytest.warns(RuntimeWarning, match="No test set"):
        result = BatchTrainer(network).run(dataset.train, epochs=1, learning_rate=0.1, batch_size=4)
    assert result.test_accuracy == 0.0


def test_parallel_training_matches_serial():
    dataset = get_dataset("blobs", n_samples=40, seed=5)

    def _train(workers):
        network = ParameterizedNetwork(dataset.input_size)
        rng = np.random.default_rng(1)
        network.add_layer(4, neuron_activation="sigmoid", init="xavier", rng=rng)
        network.add_layer(3, layer_activation="softmax", init="xavier", rng=rng)
        trainer = BatchTrainer(network, BatchEvaluator(workers=workers, seed=0))
        with pytest.warns(RuntimeWarning):
            trainer.run(dataset.train, epochs=1, learning_rate=0.2, batch_size=8, seed=3)
        return network.params

    np.testing.assert_allclose(_train(1), _train(2), atol=1e-10)


def test_plain_backend_is_rejected_for_training(tmp_path):
    dataset = get_dataset("spread", n_samples=20, seed=0)
    network = ParameterizedNetwork(2)
    network.add_layer(2, layer_activation="softmax", rng=np.random.default_rng(0))
    trainer = BatchTrainer(network, BatchEvaluator(backend="plain"))

    with pytest.raises(ValueError, match="'plain'"):
        trainer.run(dataset.train, dataset.test, epochs=1, learning_rate=0.1, batch_size=4)

    config = _blobs_config(tmp_path / "plain-run", backend="plain")
    with pytest.raises(ValueError, match="'plain'"):
        pipelines.run_pipeline(config)
    assert not (tmp_path / "plain-run").exists()
