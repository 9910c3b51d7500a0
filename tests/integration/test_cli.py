import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_basic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "blobs-tiny", "--epochs", "1"])

    run_dir = Path("runs/blobs-tiny")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    out = capsys.readouterr().out
    assert "=== tapenet run ===" in out
    payload = json.loads(out.strip().splitlines()[-1])
    assert payload["steps"] > 0


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--list-presets"])
    assert exc.value.code == 0
    names = capsys.readouterr().out.split()
    assert {"blobs-tiny", "mnist-idx", "mnist-offline", "spread-sigmoid"} <= set(names)


def test_cli_reports_missing_dataset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit, match="Could not load dataset"):
        main(["--preset", "mnist-idx", "--data-dir", str(tmp_path / "missing")])


def test_cli_offline_mnist_with_config_override(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  run_dir: custom\n  epochs: 1\n")
    dumped = tmp_path / "resolved.json"

    main(["--preset", "mnist-offline", "--config", str(override), "--dump-config", str(dumped)])

    assert json.loads(dumped.read_text())["train"]["run_dir"] == "custom"
    assert (tmp_path / "custom" / "summary.json").exists()
