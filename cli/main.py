"""Command line entry point for tapenet training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from tapenet.core.errors import DatasetError
from tapenet.core.factory import available_backends
from tapenet.data import available_datasets
from tapenet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "steps": result.steps,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "test_accuracy": result.test_accuracy,
    }
    if getattr(result, "summary_path", ""):
        payload["summary"] = result.summary_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="blobs-tiny",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--enable-plots", action="store_true", help="Render metric plots on exit")
    parser.add_argument(
        "--dataset",
        choices=sorted(available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--data-dir", help="Directory holding IDX files for the mnist dataset")
    parser.add_argument(
        "--offline",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use the synthetic MNIST fixture instead of IDX files",
    )
    parser.add_argument("--max-items", type=int, help="Limit the number of MNIST training items")
    parser.add_argument("--csv-path", help="Path to a CSV file for csv_classification")
    parser.add_argument("--target-col", help="Target column name for csv_classification")
    parser.add_argument("--epochs", type=int, help="Override the number of epochs")
    parser.add_argument("--workers", type=int, help="Number of worker processes")
    parser.add_argument("--backend", choices=available_backends(), help="Training backend")
    parser.add_argument("--seed", type=int, help="Seed used for dataset splits and training")
    parser.add_argument("--list-presets", action="store_true", help="List available presets and exit")
    parser.add_argument("--list-datasets", action="store_true", help="List registered datasets and exit")
    parser.add_argument("--dump-config", type=Path, help="Dump the resolved config to a JSON file")
    return parser.parse_args(argv)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def _dataset_options(args: argparse.Namespace) -> dict:
    opts: dict = {}
    if args.dataset == "mnist" or args.dataset is None:
        if args.data_dir:
            opts["data_dir"] = args.data_dir
        if args.offline is not None:
            opts["offline"] = bool(args.offline)
        if args.max_items is not None:
            opts["max_items"] = int(args.max_items)
    if args.dataset == "csv_classification":
        if args.csv_path:
            opts["csv_path"] = args.csv_path
        if args.target_col:
            opts["target_col"] = args.target_col
    if args.seed is not None and args.dataset in {"blobs", "spread", "csv_classification"}:
        opts["seed"] = int(args.seed)
    return opts


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    if args.list_datasets:
        for name in available_datasets():
            print(name)
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = dict(pipelines.read_config_file(args.config))
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    options = _dataset_options(args)
    if args.dataset:
        config["data"] = {"name": args.dataset, "options": options}
    elif options and config.get("data", {}).get("name") == "mnist":
        config["data"].setdefault("options", {}).update(options)

    train_cfg = config.setdefault("train", {})
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.epochs is not None:
        train_cfg["epochs"] = int(args.epochs)
    if args.workers is not None:
        train_cfg["workers"] = int(args.workers)
    if args.backend is not None:
        train_cfg["backend"] = args.backend
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    try:
        result = pipelines.run_pipeline(config)
    except DatasetError as exc:
        raise SystemExit(f"Could not load dataset: {exc}") from None

    print(_format_result(result))


if __name__ == "__main__":
    main()
