import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_preset_writes_run_directory(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NNSCRATCH_DATA_OFFLINE", "1")
    main(["--preset", "blobs-softmax", "--iterations", "5"])
    run_dir = Path("runs/blobs-softmax")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    result = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert result["iterations"] == 5


def test_cli_overrides_and_dump_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NNSCRATCH_DATA_OFFLINE", "1")
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"model": {"hidden": [5]}}))
    main(
        [
            "--preset",
            "blobs-quadratic",
            "--config",
            str(override),
            "--seed",
            "4",
            "--lr",
            "1.5",
            "--iterations",
            "3",
            "--run-dir",
            "out",
            "--dump-config",
            "out/resolved.json",
        ]
    )
    resolved = json.loads(Path("out/resolved.json").read_text())
    assert resolved["model"]["hidden"] == [5]
    assert resolved["train"]["seed"] == 4
    assert resolved["train"]["lr"] == 1.5
    manifest = json.loads(Path("out/manifest.json").read_text())
    assert manifest["model"]["layer_sizes"] == [4, 5, 3]


def test_cli_list_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    names = capsys.readouterr().out.split()
    assert "blobs-softmax" in names and "mnist-quadratic" in names


def test_cli_benchmark_forward(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NNSCRATCH_DATA_OFFLINE", "1")
    main(["--preset", "blobs-softmax", "--benchmark-forward", "20"])
    assert "Average time to calculate output of NN is" in capsys.readouterr().out
    assert not Path("runs").exists()
