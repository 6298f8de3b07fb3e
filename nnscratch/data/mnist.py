"""MNIST handwritten digits from the original IDX files, with an offline fixture."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Dict, List, Mapping

import numpy as np

from ..core.types import LabeledExample
from .cache import CacheManifest, fetch, offline_requested
from .idx import IMAGE_SIZE, IMAGE_WIDTH, extract, parse_pair, write_idx_images, write_idx_labels
from .registry import DatasetSpec, register_dataset
from .utils import resolve_cache_dir, truncate

MNIST_BASE_URL = "https://github.com/HIPS/hypergrad/raw/master/data/mnist/"
NUM_CLASSES = 10

TRAIN_IMAGES = "train-images-idx3-ubyte"
TRAIN_LABELS = "train-labels-idx1-ubyte"
TEST_IMAGES = "t10k-images-idx3-ubyte"
TEST_LABELS = "t10k-labels-idx1-ubyte"
FILE_NAMES = (TRAIN_IMAGES, TRAIN_LABELS, TEST_IMAGES, TEST_LABELS)

_FIXTURE_TRAIN = 256
_FIXTURE_TEST = 64


def _fixture_arrays(name: str) -> np.ndarray:
    """Procedural MNIST-shaped data, identical on every platform.

    Each image is a bright horizontal band whose row depends on the label, on
    top of a modular-arithmetic background, so a small network can learn it.
    """

    count = _FIXTURE_TRAIN if name.startswith("train") else _FIXTURE_TEST
    labels = np.arange(count, dtype=np.uint8) % NUM_CLASSES
    if name.startswith("t10k"):
        labels = labels[::-1].copy()
    if name.endswith("idx1-ubyte"):
        return labels
    background = (np.arange(count * IMAGE_SIZE, dtype=np.uint32) % 61).reshape(
        count, IMAGE_WIDTH, IMAGE_WIDTH
    )
    images = background.astype(np.uint8)
    for idx, label in enumerate(labels):
        row = 2 + 2 * int(label)
        images[idx, row : row + 3, 4:24] = 255
    return images


def _build_fixture(name: str, path: Path) -> None:
    arrays = _fixture_arrays(name)
    if name.endswith("idx3-ubyte"):
        write_idx_images(path, arrays, compress=True)
    else:
        write_idx_labels(path, arrays, compress=True)


def download_files(
    cache_dir: Path,
    *,
    offline: bool,
    overwrite: bool = False,
    base_url: str = MNIST_BASE_URL,
) -> Dict[str, Mapping[str, object]]:
    """Fetch the four compressed files concurrently; return their cache records."""

    manifest = CacheManifest(cache_dir)
    offline_root = cache_dir / "offline"

    def _one(name: str) -> Mapping[str, object]:
        _, record = fetch(
            name=f"mnist/{name}",
            url=f"{base_url}{name}.gz",
            filename=f"{name}.gz",
            offline_path=offline_root / f"{name}.gz",
            offline_builder=partial(_build_fixture, name),
            offline=offline,
            overwrite=overwrite,
            manifest=manifest,
            cache_dir=cache_dir,
        )
        return record

    with ThreadPoolExecutor(max_workers=len(FILE_NAMES)) as pool:
        records = list(pool.map(_one, FILE_NAMES))
    return dict(zip(FILE_NAMES, records))


def extract_files(
    records: Mapping[str, Mapping[str, object]], out_dir: Path, *, overwrite: bool = False
) -> Dict[str, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)

    def _one(name: str) -> Path:
        return extract(Path(str(records[name]["local_path"])), out_dir / name, overwrite=overwrite)

    with ThreadPoolExecutor(max_workers=len(FILE_NAMES)) as pool:
        paths = list(pool.map(_one, FILE_NAMES))
    return dict(zip(FILE_NAMES, paths))


def parse_files(paths: Mapping[str, Path]) -> tuple[List[LabeledExample], List[LabeledExample]]:
    """Parse the train and test pairs concurrently."""

    pairs = [(paths[TRAIN_IMAGES], paths[TRAIN_LABELS]), (paths[TEST_IMAGES], paths[TEST_LABELS])]
    with ThreadPoolExecutor(max_workers=2) as pool:
        train, test = pool.map(
            lambda pair: parse_pair(pair[0], pair[1], num_classes=NUM_CLASSES), pairs
        )
    return train, test


@register_dataset("mnist")
def build_mnist(
    *,
    offline: bool | None = None,
    cache_dir: str | Path | None = None,
    max_train: int | None = None,
    max_test: int | None = None,
    overwrite: bool = False,
    **_: object,
) -> DatasetSpec:
    """Download, extract and parse MNIST into a :class:`DatasetSpec`."""

    cache_root = resolve_cache_dir(cache_dir)
    offline = offline_requested(offline)
    records = download_files(cache_root, offline=offline, overwrite=overwrite)
    mode = "offline" if offline else "online"
    paths = extract_files(records, cache_root / "mnist" / mode, overwrite=overwrite or offline)
    train, test = parse_files(paths)
    train = truncate(train, max_train)
    test = truncate(test, max_test)

    provenance: Dict[str, object] = {
        "name": "mnist",
        "mode": mode,
        "source": MNIST_BASE_URL,
        "files": {name: dict(record) for name, record in records.items()},
        "max_train": max_train,
        "max_test": max_test,
    }
    return DatasetSpec(
        name="mnist",
        train=train,
        test=test,
        input_width=IMAGE_SIZE,
        num_classes=NUM_CLASSES,
        provenance=provenance,
    )


__all__ = ["FILE_NAMES", "MNIST_BASE_URL", "build_mnist", "download_files", "extract_files", "parse_files"]
