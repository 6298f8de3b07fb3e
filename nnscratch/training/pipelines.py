"""Pipeline assembly: dataset, network and trainer from a plain config."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence

from ..core.layer import InitPolicy
from ..core.network import Network
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.summary import write_summary
from ..reporting.timing import Stopwatch
from .trainer import SGDOptimizer, Trainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "blobs-softmax": {
        "data": {
            "name": "blobs",
            "options": {"n_train": 192, "n_test": 48, "dim": 4, "num_classes": 3, "seed": 0},
        },
        "model": {"hidden": [8], "cost": "cross_entropy", "init": "symmetric"},
        "train": {
            "iterations": 60,
            "lr": 0.5,
            "batch_size": 32,
            "seed": 7,
            "eval_every": 10,
            "run_dir": "runs/blobs-softmax",
            "enable_plots": False,
        },
    },
    "blobs-quadratic": {
        "data": {
            "name": "blobs",
            "options": {"n_train": 192, "n_test": 48, "dim": 4, "num_classes": 3, "seed": 0},
        },
        "model": {"hidden": [8], "cost": "quadratic", "init": "symmetric"},
        "train": {
            "iterations": 60,
            "lr": 2.0,
            "batch_size": 32,
            "seed": 7,
            "eval_every": 10,
            "run_dir": "runs/blobs-quadratic",
            "enable_plots": False,
        },
    },
    "mnist-softmax": {
        "data": {"name": "mnist", "options": {}},
        "model": {
            "hidden": [30],
            "cost": "cross_entropy",
            "init": {"low": -0.1, "high": 0.1, "bias": "zero"},
            "l2": 0.0,
        },
        "train": {
            "iterations": 3000,
            "lr": 0.5,
            "batch_size": 32,
            "seed": 1,
            "eval_every": 500,
            "eval_limit": 2000,
            "clip_norm": 5.0,
            "on_divergence": "reduce_lr",
            "run_dir": "runs/mnist-softmax",
            "enable_plots": False,
        },
    },
    "mnist-quadratic": {
        "data": {"name": "mnist", "options": {}},
        "model": {
            "hidden": [10, 10],
            "cost": "quadratic",
            "init": {"low": -0.1, "high": 0.1, "bias": "zero"},
        },
        "train": {
            "iterations": 3000,
            "lr": 3.0,
            "batch_size": 10,
            "seed": 1,
            "eval_every": 500,
            "eval_limit": 2000,
            "run_dir": "runs/mnist-quadratic",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_REQUIRED_SECTIONS = {"data", "model", "train"}


def read_config_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    presets: Dict[str, Mapping[str, object]] = {}
    if not _PRESET_DIR.exists():
        return presets
    for file in sorted(_PRESET_DIR.iterdir()):
        if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
            continue
        data = read_config_file(file)
        missing = _REQUIRED_SECTIONS - set(data)
        if missing:
            missing_str = ", ".join(sorted(missing))
            raise KeyError(f"Preset {file.name} is missing required sections: {missing_str}")
        presets[file.stem] = json.loads(json.dumps(data))
    return presets


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    available = presets()
    if name not in available:
        raise KeyError(f"Unknown preset: {name}")
    return available[name]


def build_network(model_cfg: Mapping[str, object], input_width: int, num_classes: int, seed: int) -> Network:
    hidden = [int(h) for h in model_cfg.get("hidden", [])]  # type: ignore[union-attr]
    return Network.build(
        [input_width, *hidden, num_classes],
        cost=str(model_cfg.get("cost", "cross_entropy")),
        output_activation=model_cfg.get("output_activation"),  # type: ignore[arg-type]
        init=InitPolicy.from_config(model_cfg.get("init")),  # type: ignore[arg-type]
        seed=int(model_cfg.get("seed", seed)),
        l2=float(model_cfg.get("l2", 0.0)),
    )


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config is missing required sections: {', '.join(sorted(missing))}")
    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config["model"])  # type: ignore[arg-type]
    train_cfg = dict(config["train"])  # type: ignore[arg-type]

    offline = config.get("offline")
    seed = int(train_cfg.get("seed", 0))
    verbose = bool(train_cfg.get("verbose", True))
    timings: Dict[str, float] = {}

    with Stopwatch("load_dataset", "Loaded dataset", timings, verbose=verbose):
        dataset = registry.get_dataset(
            str(data_cfg["name"]),
            offline=None if offline is None else bool(offline),
            cache_dir=train_cfg.get("cache_dir"),
            **dict(data_cfg.get("options", {})),  # type: ignore[arg-type]
        )

    with Stopwatch("build_network", "Created Neural Network", timings, verbose=verbose):
        network = build_network(model_cfg, dataset.input_width, dataset.num_classes, seed)

    run_dir = _resolve_run_dir(train_cfg, dataset.name, network.cost_fn.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    if verbose:
        _print_startup_summary(
            dataset_name=dataset.name,
            splits=dataset.splits,
            sizes=network.layer_sizes,
            cost=network.cost_fn.name,
            activations=[layer.activation.value for layer in network.layers],
            param_count=network.parameter_count(),
        )

    train_jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    train_csv = CsvSink(run_dir / "metrics_train.csv", split="train")
    test_jsonl = JsonlSink(run_dir / "metrics_test.jsonl", split="test", seed=seed)
    test_csv = CsvSink(run_dir / "metrics_test.csv", split="test")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    optimizer = SGDOptimizer(
        lr=float(train_cfg.get("lr", 0.1)),
        decay=float(train_cfg.get("lr_decay", 0.0)),
    )
    trainer = Trainer(network=network, optimizer=optimizer)

    batch_size = train_cfg.get("batch_size")
    clip_norm = train_cfg.get("clip_norm")
    eval_limit = train_cfg.get("eval_limit")
    with Stopwatch("train", "Trained network", timings, verbose=verbose):
        result = trainer.run(
            dataset.train,
            iterations=int(train_cfg.get("iterations", 100)),
            seed=seed,
            batch_size=int(batch_size) if batch_size is not None else None,
            test=dataset.test or None,
            eval_every=int(train_cfg.get("eval_every", 1)),
            eval_limit=int(eval_limit) if eval_limit is not None else None,
            clip_norm=float(clip_norm) if clip_norm is not None else None,
            on_divergence=str(train_cfg.get("on_divergence", "halt")),
            workers=int(train_cfg.get("workers", 1)),
            split_loggers={
                "train": [train_jsonl, train_csv, plots.for_split("train")],
                "test": [test_jsonl, test_csv, plots.for_split("test")],
            },
        )
    plots.close()

    final_test = dict(result.final_metrics.get("test", {}))
    (run_dir / "metrics_test.json").write_text(json.dumps(final_test, indent=2))

    safe_config = _safe_config(config)
    description = network.describe()
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        model={
            "layer_sizes": description.layer_sizes,
            "activations": description.activations,
            "cost": description.cost,
            "l2": description.l2,
            "parameters": network.parameter_count(),
            "skipped_updates": result.skipped,
        },
        timings_ms=timings,
    )
    summary_tail = int(train_cfg.get("summary_tail", 32))
    summary_path = write_summary(train_jsonl.path, run_dir / "summary.json", tail=summary_tail)

    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))
    (run_dir / "metrics.jsonl").write_text(train_jsonl.path.read_text())

    return RunResult(
        iterations=result.iterations,
        metrics_path=str(train_jsonl.path),
        manifest_path=manifest,
        summary_path=str(summary_path),
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str, cost: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset / cost


def _safe_config(config: Mapping[str, object]) -> Mapping[str, object]:
    return json.loads(json.dumps(config, default=str))


def _print_startup_summary(
    *,
    dataset_name: str,
    splits: Mapping[str, int],
    sizes: Sequence[int],
    cost: str,
    activations: Iterable[str],
    param_count: int,
) -> None:
    print("=== nnscratch run ===")
    print(f"Dataset       : {dataset_name} {dict(splits)}")
    print(f"Layer sizes   : {list(sizes)}")
    print(f"Activations   : {list(activations)}")
    print(f"Cost          : {cost}")
    print(f"Parameters    : {param_count}")
    print("=====================")


def merge_config(base: Mapping[str, object], override: Mapping[str, object]) -> Dict[str, object]:
    merged: Dict[str, object] = deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)  # type: ignore[arg-type]
        else:
            merged[key] = deepcopy(value)
    return merged


__all__: List[str] = [
    "build_network",
    "load_preset",
    "merge_config",
    "presets",
    "read_config_file",
    "run_pipeline",
]
