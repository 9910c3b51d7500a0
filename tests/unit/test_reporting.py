import csv
import json

import pytest

from tapenet.core.types import DataPoint
from tapenet.reporting import CsvSink, JsonlSink, PlotSink, write_manifest, write_summary
from tapenet.reporting.summary import tail_auc
from tapenet.utils import human_duration


def test_jsonl_sink_records_split_seed_and_sha(tmp_path):
    sink = JsonlSink(tmp_path / "metrics.jsonl", split="test", seed=5, sha="abc")
    sink.on_epoch(1, {"error": 0.5, "accuracy": 0.75, "note": "skipped"})
    sink.on_step(2, {"error": 0.25})

    records = [json.loads(line) for line in sink.path.read_text().splitlines()]
    assert records[0] == {"epoch": 1, "split": "test", "seed": 5, "sha": "abc", "error": 0.5, "accuracy": 0.75}
    assert records[1]["step"] == 2
    assert "epoch" not in records[1]


def test_csv_sink_writes_header_once(tmp_path):
    sink = CsvSink(tmp_path / "metrics.csv")
    sink.on_epoch(1, {"error": 1.0})
    sink.on_epoch(2, {"error": 0.5})

    with sink.path.open() as handle:
        rows = list(csv.DictReader(handle))
    assert [row["epoch"] for row in rows] == ["1", "2"]
    assert rows[1]["error"] == "0.5"


def test_summary_reports_metric_statistics(tmp_path):
    metrics = tmp_path / "metrics.jsonl"
    lines = [{"epoch": i, "seed": 1, "split": "train", "error": float(4 - i)} for i in range(4)]
    metrics.write_text("\n".join(json.dumps(line) for line in lines) + "\n")

    out = write_summary(metrics, tmp_path / "summary.json", tail=2, extra={"test_accuracy": 0.9})
    summary = json.loads((tmp_path / "summary.json").read_text())

    assert out.endswith("summary.json")
    assert summary["records"] == 4
    assert summary["tail_window"] == 2
    assert summary["test_accuracy"] == 0.9
    assert set(summary["metrics"]) == {"error"}
    assert summary["metrics"]["error"]["last"] == 1.0
    assert summary["metrics"]["error"]["tail_auc"] == pytest.approx(1.5)


def test_tail_auc_handles_short_series():
    assert tail_auc([]) == 0.0
    assert tail_auc([3.0]) == 0.0
    assert tail_auc([0.0, 1.0, 2.0]) == pytest.approx(2.0)


def test_manifest_captures_config_and_network(tmp_path):
    path = write_manifest(
        tmp_path / "run" / "manifest.json",
        config={"train": {"seed": 3}},
        dataset_provenance={"type": "synthetic"},
        network={"parameter_count": 10},
    )
    manifest = json.loads(open(path).read())

    assert manifest["config"]["train"]["seed"] == 3
    assert manifest["dataset"]["type"] == "synthetic"
    assert manifest["network"]["parameter_count"] == 10
    assert "git_sha" in manifest


def test_plot_sink_disabled_is_a_no_op(tmp_path):
    sink = PlotSink(tmp_path / "plots")
    assert sink.submit(DataPoint(0.0, 1.0, "error")) is False
    assert sink.close() == []
    assert not (tmp_path / "plots").exists()


def test_plot_sink_drops_when_full_without_blocking(tmp_path, monkeypatch):
    # Without a consumer the queue fills up and stays full.
    monkeypatch.setattr(PlotSink, "_consume", lambda self: None)
    sink = PlotSink(tmp_path, enable_plots=True, capacity=2)

    assert sink.submit(DataPoint(0.0, 1.0, "train_error"))
    assert sink.submit(DataPoint(1.0, 0.5, "train_error"))
    assert sink.submit(DataPoint(2.0, 0.25, "train_error")) is False
    assert sink.dropped == 1

    assert sink.drain()["train_error"] == [(0.0, 1.0), (1.0, 0.5)]
    assert sink.submit(DataPoint(0.0, 0.1, "test_accuracy"))
    with pytest.warns(RuntimeWarning, match="dropped 1"):
        written = sink.close()

    assert sorted(p.name for p in written) == ["test_accuracy.png", "train_error.png"]
    assert all(p.exists() for p in written)


def test_plot_sink_keeps_points_beyond_capacity_while_running(tmp_path):
    sink = PlotSink(tmp_path, enable_plots=True, capacity=8)

    for chunk in range(5):
        for i in range(8):
            assert sink.submit(DataPoint(float(chunk * 8 + i), 1.0, "train_error"))
        sink.flush()

    points = sink.drain()["train_error"]
    assert len(points) == 40
    assert points[-1] == (39.0, 1.0)
    assert sink.dropped == 0
    assert [p.name for p in sink.close()] == ["train_error.png"]


@pytest.mark.parametrize(
    "seconds, expected",
    [(0.4, "0s"), (59, "59s"), (3610, "1h 10s"), (90061, "1d 1h 1m 1s")],
)
def test_human_duration(seconds, expected):
    assert human_duration(seconds) == expected
