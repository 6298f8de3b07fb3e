"""Pure in-memory synthetic classification datasets."""

from __future__ import annotations

from pathlib import Path

import numpy as np

from ..core.types import LabeledExample
from .registry import DatasetSpec, register_dataset
from .utils import one_hot


def make_blobs(
    n: int = 512,
    dim: int = 8,
    num_classes: int = 2,
    *,
    spread: float = 1.0,
    separation: float = 3.0,
    seed: int = 123,
) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(features, labels)`` drawn from ``num_classes`` Gaussian clusters."""

    if n < num_classes:
        raise ValueError(f"n={n} must be at least num_classes={num_classes}")
    rng = np.random.default_rng(seed)
    centres = rng.normal(0.0, separation, size=(num_classes, dim))
    labels = np.arange(n, dtype=np.int64) % num_classes
    features = centres[labels] + rng.normal(0.0, spread, size=(n, dim))
    order = rng.permutation(n)
    return features[order].astype(np.float32), labels[order]


@register_dataset("blobs")
def build_blobs(
    *,
    n_train: int = 256,
    n_test: int = 64,
    dim: int = 8,
    num_classes: int = 3,
    spread: float = 1.0,
    separation: float = 3.0,
    seed: int = 0,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    **_: object,
) -> DatasetSpec:
    features, labels = make_blobs(
        n_train + n_test,
        dim,
        num_classes,
        spread=spread,
        separation=separation,
        seed=seed,
    )
    targets = one_hot(labels, num_classes)
    examples = [LabeledExample(label=t, features=f) for t, f in zip(targets, features)]
    provenance = {
        "name": "blobs",
        "type": "synthetic",
        "seed": seed,
        "dim": dim,
        "num_classes": num_classes,
        "spread": spread,
        "separation": separation,
    }
    return DatasetSpec(
        name="blobs",
        train=examples[:n_train],
        test=examples[n_train:],
        input_width=dim,
        num_classes=num_classes,
        provenance=provenance,
    )


__all__ = ["build_blobs", "make_blobs"]
