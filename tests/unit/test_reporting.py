import csv
import json

import numpy as np
import pytest

from nnscratch.core.network import Network
from nnscratch.core.types import LabeledExample
from nnscratch.data.cache import CacheManifest
from nnscratch.reporting import (
    CsvSink,
    JsonlSink,
    PlotAdapter,
    Stopwatch,
    benchmark_forward,
    write_manifest,
    write_summary,
)
from nnscratch.reporting.summary import compute_auc


def test_jsonl_sink_writes_nulls_for_non_finite_values(tmp_path):
    sink = JsonlSink(tmp_path / "metrics.jsonl", split="test", seed=3, sha="abc")
    sink.on_epoch(1, {"loss": 0.5, "accuracy": 0.25})
    sink(2, {"loss": float("nan"), "accuracy": 0.5})
    records = [json.loads(line) for line in sink.path.read_text().splitlines()]
    assert records[0] == {
        "iteration": 1,
        "split": "test",
        "seed": 3,
        "sha": "abc",
        "loss": 0.5,
        "accuracy": 0.25,
    }
    assert records[1]["loss"] is None


def test_csv_sink_writes_a_single_header(tmp_path):
    sink = CsvSink(tmp_path / "metrics.csv")
    sink.on_epoch(1, {"loss": 1.0})
    sink.on_epoch(2, {"loss": 0.5})
    with sink.path.open() as handle:
        rows = list(csv.DictReader(handle))
    assert [row["iteration"] for row in rows] == ["1", "2"]
    assert rows[1]["loss"] == "0.5"


def test_summary_is_deterministic(tmp_path):
    metrics = tmp_path / "metrics.jsonl"
    lines = [{"iteration": i, "seed": 0, "split": "train", "loss": 1.0 / i} for i in range(1, 6)]
    metrics.write_text("\n".join(json.dumps(line) for line in lines) + "\n")
    first = write_summary(metrics, tmp_path / "a.json", tail=3)
    second = write_summary(metrics, tmp_path / "b.json", tail=3)
    assert (tmp_path / "a.json").read_bytes() == (tmp_path / "b.json").read_bytes()
    summary = json.loads((tmp_path / "a.json").read_text())
    assert first.endswith("a.json") and second.endswith("b.json")
    assert summary["records"] == 5 and summary["tail_window"] == 3
    assert set(summary["metrics"]) == {"loss"}
    assert summary["metrics"]["loss"]["last"] == pytest.approx(0.2)
    assert compute_auc([1.0, 3.0]) == pytest.approx(2.0)
    assert compute_auc([1.0]) == 0.0


def test_manifest_captures_environment(tmp_path):
    path = write_manifest(
        tmp_path / "manifest.json",
        config={"train": {"seed": 1}},
        dataset_provenance={"name": "blobs"},
        model={"layer_sizes": [2, 2]},
        timings_ms={"train": 12.3441},
    )
    manifest = json.loads(open(path).read())
    assert manifest["dataset"] == {"name": "blobs"}
    assert manifest["timings_ms"] == {"train": 12.344}
    assert set(manifest["environment"]) == {"python", "numpy", "offline"}


def test_cache_manifest_persists_records(tmp_path):
    manifest = CacheManifest(tmp_path)
    manifest.record("mnist/labels", {"mode": "offline"})
    reloaded = CacheManifest(tmp_path)
    assert reloaded.get("mnist/labels")["mode"] == "offline"
    assert reloaded.get("missing") is None


def test_plot_adapter_writes_png(tmp_path):
    pytest.importorskip("matplotlib")
    adapter = PlotAdapter(tmp_path, enable_plots=True)
    train = adapter.for_split("train")
    for step in range(1, 4):
        train(step, {"loss": 1.0 / step, "accuracy": 0.3 * step})
    path = adapter.close()
    assert path is not None and path.exists()
    assert PlotAdapter(tmp_path / "off").close() is None


def test_stopwatch_records_and_prints(capsys):
    timings = {}
    with Stopwatch("load", "Loaded dataset", timings):
        pass
    assert timings["load"] >= 0.0
    assert capsys.readouterr().out.startswith("Loaded dataset in ")
    with Stopwatch("quiet", timings=timings, verbose=False):
        pass
    assert "quiet" in timings and capsys.readouterr().out == ""


def test_benchmark_forward_averages_calls():
    net = Network.build([3, 2], seed=0)
    examples = [LabeledExample(label=[1, 0], features=np.ones(3))]
    assert benchmark_forward(net, examples, 5) >= 0.0
    with pytest.raises(ValueError):
        benchmark_forward(net, examples, 0)
