"""Pipeline assembly: presets, network construction and run artifacts."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

import numpy as np
import yaml

from ..core.losses import REGISTRY as ERROR_REGISTRY
from ..core.network import ParameterizedNetwork
from ..core.types import RunResult
from ..data import registry
from ..data.utils import seed_everything
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotSink
from ..reporting.summary import write_summary
from ..utils import human_duration
from .parallel import BatchEvaluator
from .trainer import BatchTrainer, require_trainable_backend

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-tiny": {
        "data": {
            "name": "blobs",
            "options": {"n_samples": 240, "n_features": 2, "n_classes": 3, "seed": 0},
        },
        "model": {
            "error_function": "categorical_cross_entropy",
            "init": "xavier",
            "layers": [
                {"neurons": 8, "activation": "leaky_relu:0.01", "bias": True},
                {"neurons": 3, "activation": "none", "layer_activation": "softmax"},
            ],
        },
        "train": {
            "epochs": 3,
            "learning_rate": [0.5, 0.05],
            "batch_size": [8, 16],
            "workers": 1,
            "backend": "tape",
            "seed": 7,
            "run_dir": "runs/blobs-tiny",
            "enable_plots": False,
        },
    },
    "mnist-offline": {
        "data": {"name": "mnist", "options": {"offline": True, "offline_samples": 60}},
        "model": {
            "error_function": "categorical_cross_entropy",
            "init": "xavier",
            "layers": [
                {"neurons": 8, "activation": "leaky_relu:0.01", "bias": True, "dropout": 0.5},
                {"neurons": 10, "activation": "none", "layer_activation": "softmax"},
            ],
        },
        "train": {
            "epochs": 1,
            "learning_rate": [0.1, 0.01],
            "batch_size": [16, 8],
            "workers": 1,
            "backend": "tape",
            "seed": 1,
            "run_dir": "runs/mnist-offline",
            "enable_plots": False,
        },
    },
    "mnist-idx": {
        "data": {"name": "mnist", "options": {"data_dir": "mnist"}},
        "model": {
            "error_function": "categorical_cross_entropy",
            "init": "scaled_uniform",
            "layers": [
                {"neurons": 32, "activation": "leaky_relu:0.01", "bias": True, "dropout": 0.5},
                {"neurons": 10, "activation": "none", "layer_activation": "softmax"},
            ],
        },
        "train": {
            "epochs": 10,
            "learning_rate": [0.01, 0.0001],
            "batch_size": [128, 8],
            "workers": 8,
            "backend": "tape",
            "seed": 0,
            "run_dir": "runs/mnist-idx",
            "enable_plots": True,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def read_config_file(path: Path) -> Mapping[str, object]:
    """Decode a JSON or YAML config file into a mapping."""

    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = read_config_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    if name not in _PRESETS:
        raise KeyError(f"Unknown preset: {name}. Available: {', '.join(sorted(presets()))}")
    return deepcopy(_PRESETS[name])


def build_network(
    model_cfg: Mapping[str, Any],
    input_size: int,
    categories_count: int,
    seed: int,
) -> ParameterizedNetwork:
    """Build a network from the ``model`` config section.

    The last layer may omit ``neurons``; it then gets one neuron per category.
    """

    layers: Sequence[Mapping[str, Any]] = list(model_cfg.get("layers", []))
    if not layers:
        raise KeyError("model.layers must list at least one layer")
    error_function = str(model_cfg.get("error_function", "categorical_cross_entropy"))
    if error_function not in ERROR_REGISTRY:
        raise KeyError(f"Unknown error function {error_function!r}. Available: {', '.join(ERROR_REGISTRY.names())}")
    init = str(model_cfg.get("init", "scaled_uniform"))
    rng = np.random.default_rng(seed)

    network = ParameterizedNetwork(input_size, error_function=error_function)
    for index, layer_cfg in enumerate(layers):
        is_last = index == len(layers) - 1
        neurons = layer_cfg.get("neurons", categories_count if is_last else None)
        if neurons is None:
            raise KeyError(f"model.layers[{index}] is missing 'neurons'")
        network.add_layer(
            int(neurons),
            uses_bias=bool(layer_cfg.get("bias", True)),
            dropout_rate=float(layer_cfg.get("dropout", 0.0)),
            neuron_activation=str(layer_cfg.get("activation", "none")),
            layer_activation=str(layer_cfg.get("layer_activation", "none")),
            init=init,
            rng=rng,
        )
    if network.output_size != categories_count:
        raise ValueError(
            f"Output layer has {network.output_size} neurons but the dataset has {categories_count} categories"
        )
    return network


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    backend = str(train_cfg.get("backend", "tape"))
    require_trainable_backend(backend)
    seed = int(train_cfg.get("seed", 0))
    seed_everything(seed)
    dataset = registry.get_dataset(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    network = build_network(model_cfg, dataset.input_size, dataset.categories_count, seed)

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    workers = int(train_cfg.get("workers", 1))
    epochs = int(train_cfg.get("epochs", 1))
    learning_rate = train_cfg.get("learning_rate", 0.01)
    batch_size = train_cfg.get("batch_size", 16)

    _print_startup_summary(
        dataset_name=dataset.name,
        splits=dataset.splits,
        layers=[layer["neurons"] for layer in network.describe()["layers"]],
        input_size=network.input_size,
        error_function=network.error_function,
        param_count=network.parameter_count,
        backend=backend,
        workers=workers,
        epochs=epochs,
        learning_rate=learning_rate,
        batch_size=batch_size,
    )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    test_jsonl = JsonlSink(run_dir / "metrics_test.jsonl", split="test", seed=seed)
    test_csv = CsvSink(run_dir / "metrics_test.csv", split="test")
    steps_jsonl = JsonlSink(run_dir / "metrics_steps.jsonl", split="train", seed=seed)
    plot_sink = PlotSink(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    trainer = BatchTrainer(
        network,
        BatchEvaluator(workers=workers, backend=backend, seed=seed),
        callbacks=[steps_jsonl],
        plot_sink=plot_sink,
    )
    started = time.perf_counter()
    result = trainer.run(
        dataset.train,
        dataset.test,
        epochs=epochs,
        learning_rate=learning_rate,  # type: ignore[arg-type]
        batch_size=batch_size,  # type: ignore[arg-type]
        seed=seed,
        shuffle=bool(train_cfg.get("shuffle", True)),
        eval_every=int(train_cfg.get("eval_every", 1)),
        split_loggers={"train": [train_jsonl, train_csv], "test": [test_jsonl, test_csv]},
        checkpoint_dir=run_dir,
    )
    elapsed = time.perf_counter() - started
    plot_sink.close()

    safe_config = _safe_config(config)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        network=network.describe(),
    )
    summary_path = write_summary(
        train_jsonl.path,
        run_dir / "summary.json",
        tail=int(train_cfg.get("summary_tail", 32)),
        extra={"test_accuracy": result.test_accuracy},
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    (run_dir / "metrics.jsonl").write_text(train_jsonl.path.read_text())
    (run_dir / "metrics.csv").write_text(train_csv.path.read_text())

    print(f"Finished in {human_duration(elapsed)}; test accuracy {result.test_accuracy:.2%}")
    return RunResult(
        steps=result.steps,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=str(summary_path),
        test_accuracy=result.test_accuracy,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _safe_config(config: Mapping[str, object]) -> Mapping[str, object]:
    return json.loads(json.dumps(config))


def _print_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    layers: List[int],
    input_size: int,
    error_function: str,
    param_count: int,
    backend: str,
    workers: int,
    epochs: int,
    learning_rate: object,
    batch_size: object,
) -> None:
    print("=== tapenet run ===")
    print(f"Dataset       : {dataset_name} (train={splits['train']}, test={splits['test']})")
    print(f"Topology      : {[input_size, *layers]}")
    print(f"Error         : {error_function}")
    print(f"Parameters    : {param_count}")
    print(f"Backend       : {backend} x{workers}")
    print(f"Epochs        : {epochs}")
    print(f"Learning rate : {learning_rate}")
    print(f"Batch size    : {batch_size}")
    print("===================")


__all__ = ["build_network", "load_preset", "presets", "read_config_file", "run_pipeline"]
