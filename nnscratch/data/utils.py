"""Utility helpers for dataset loaders."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np

DEFAULT_CACHE_SUBDIR = Path.home() / ".cache" / "nnscratch"


def resolve_cache_dir(cache_dir: str | Path | None = None) -> Path:
    """Resolve the effective cache directory for datasets."""

    env_dir = os.environ.get("NNSCRATCH_CACHE_DIR")
    base = Path(cache_dir or env_dir or DEFAULT_CACHE_SUBDIR)
    base.mkdir(parents=True, exist_ok=True)
    return base


def one_hot(labels: np.ndarray, num_classes: int, dtype=np.float32) -> np.ndarray:
    """Return a ``(len(labels), num_classes)`` matrix of one-hot rows."""

    labels = np.asarray(labels, dtype=np.int64).reshape(-1)
    if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
        raise ValueError(f"labels must lie in [0, {num_classes}), got {labels.min()}..{labels.max()}")
    return np.eye(num_classes, dtype=dtype)[labels]


def truncate(items: list, limit: int | None) -> list:
    if limit is None:
        return items
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    return items[:limit]


__all__ = ["DEFAULT_CACHE_SUBDIR", "one_hot", "resolve_cache_dir", "truncate"]
