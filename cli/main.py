"""Command line entry point for nnscratch training runs."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Iterable

from nnscratch.data import registry
from nnscratch.reporting.timing import benchmark_forward
from nnscratch.training import pipelines


def _format_result(result) -> str:
    payload = {
        "iterations": result.iterations,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="blobs-softmax",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument(
        "--offline",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Use the offline dataset fixtures instead of downloading",
    )
    parser.add_argument("--seed", type=int, help="Seed used for initialisation and batching")
    parser.add_argument("--iterations", type=int, help="Number of gradient steps")
    parser.add_argument("--lr", type=float, help="Learning rate")
    parser.add_argument("--run-dir", help="Directory receiving the run artifacts")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write loss.png to the run directory"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    parser.add_argument(
        "--benchmark-forward",
        type=int,
        metavar="N",
        help="Time N forward passes of the freshly built network and exit",
    )
    return parser.parse_args(argv)


def _benchmark(config: dict, iterations: int) -> None:
    data_cfg = config["data"]
    train_cfg = config.get("train", {})
    seed = int(train_cfg.get("seed", 0))
    dataset = registry.get_dataset(
        data_cfg["name"],
        offline=config.get("offline"),
        cache_dir=train_cfg.get("cache_dir"),
        **data_cfg.get("options", {}),
    )
    network = pipelines.build_network(
        config["model"], dataset.input_width, dataset.num_classes, seed
    )
    average = benchmark_forward(network, dataset.train, iterations)
    print(f"Average time to calculate output of NN is {average:.4f} ms")


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = dict(pipelines.load_preset(args.preset))
    if args.config:
        override = pipelines.read_config_file(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = pipelines.merge_config(config, override)

    train_cfg = config.setdefault("train", {})
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.iterations is not None:
        train_cfg["iterations"] = int(args.iterations)
    if args.lr is not None:
        train_cfg["lr"] = float(args.lr)
    if args.run_dir:
        train_cfg["run_dir"] = args.run_dir
    if args.enable_plots:
        train_cfg["enable_plots"] = True

    config["offline"] = bool(args.offline)
    os.environ["NNSCRATCH_DATA_OFFLINE"] = "1" if args.offline else "0"

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    if args.benchmark_forward:
        _benchmark(config, args.benchmark_forward)
        return

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
