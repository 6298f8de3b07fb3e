"""Reader and writer for the IDX binary format used by MNIST.

An IDX file starts with a big-endian ``int32`` magic number followed by one
big-endian ``int32`` per dimension and then the raw ``uint8`` payload.
"""

from __future__ import annotations

import gzip
import shutil
from pathlib import Path
from typing import List

import numpy as np

from ..core.types import DEFAULT_DTYPE, LabeledExample
from .utils import one_hot

IMAGE_MAGIC = 2051
LABEL_MAGIC = 2049
IMAGE_WIDTH = 28
IMAGE_SIZE = IMAGE_WIDTH * IMAGE_WIDTH

_BYTE_TO_FLOAT = np.arange(256, dtype=np.float64) / 255.0


class IdxFormatError(ValueError):
    """Raised when an IDX file is truncated or has an unexpected header."""


def _read_header(data: bytes, count: int, path: Path) -> List[int]:
    if len(data) < 4 * count:
        raise IdxFormatError(f"{path} is too short to hold an IDX header")
    return [int(v) for v in np.frombuffer(data, dtype=">i4", count=count)]


def read_idx_images(path: str | Path, *, width: int = IMAGE_WIDTH) -> np.ndarray:
    """Return a ``(count, width * width)`` ``uint8`` array of images."""

    path = Path(path)
    data = path.read_bytes()
    magic, count, rows, cols = _read_header(data, 4, path)
    if magic != IMAGE_MAGIC:
        raise IdxFormatError(
            f"Image file's magic number should be {IMAGE_MAGIC}, was {magic}"
        )
    if rows != width or cols != width:
        raise IdxFormatError(
            f"Image file's image dimensions are {rows}x{cols}, expected {width}x{width}"
        )
    payload = np.frombuffer(data, dtype=np.uint8, offset=16)
    if payload.size != count * rows * cols:
        raise IdxFormatError(
            f"{path} declares {count} images but holds {payload.size} pixel bytes"
        )
    return payload.reshape(count, rows * cols)


def read_idx_labels(path: str | Path) -> np.ndarray:
    """Return a ``(count,)`` ``uint8`` array of class labels."""

    path = Path(path)
    data = path.read_bytes()
    magic, count = _read_header(data, 2, path)
    if magic != LABEL_MAGIC:
        raise IdxFormatError(
            f"Label file's magic number should be {LABEL_MAGIC}, was {magic}"
        )
    payload = np.frombuffer(data, dtype=np.uint8, offset=8)
    if payload.size != count:
        raise IdxFormatError(f"{path} declares {count} labels but holds {payload.size}")
    return payload


def parse_pair(
    image_path: str | Path,
    label_path: str | Path,
    *,
    num_classes: int = 10,
    dtype=DEFAULT_DTYPE,
) -> List[LabeledExample]:
    """Parse matching image and label files into :class:`LabeledExample` rows."""

    images = read_idx_images(image_path)
    labels = read_idx_labels(label_path)
    if images.shape[0] != labels.shape[0]:
        raise IdxFormatError(
            f"Label file has {labels.shape[0]} entries but image file has {images.shape[0]}"
        )
    features = _BYTE_TO_FLOAT[images].astype(dtype)
    targets = one_hot(labels, num_classes, dtype=dtype)
    return [
        LabeledExample(label=target, features=row, dtype=dtype)
        for target, row in zip(targets, features)
    ]


def extract(gz_path: str | Path, out_path: str | Path, *, overwrite: bool = False) -> Path:
    """Decompress ``gz_path`` into ``out_path`` unless it already exists."""

    gz_path, out_path = Path(gz_path), Path(out_path)
    if out_path.exists() and not overwrite:
        return out_path
    if not gz_path.exists():
        raise FileNotFoundError(f"Files must be downloaded before extraction: {gz_path}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with gzip.open(gz_path, "rb") as src, out_path.open("wb") as dst:
        shutil.copyfileobj(src, dst)
    return out_path


def _encode(magic: int, dims: List[int], payload: np.ndarray) -> bytes:
    header = np.array([magic, *dims], dtype=">i4").tobytes()
    return header + np.ascontiguousarray(payload, dtype=np.uint8).tobytes()


def write_idx_images(path: str | Path, images: np.ndarray, *, compress: bool = False) -> Path:
    """Write ``(count, rows, cols)`` ``uint8`` images as an IDX file."""

    images = np.asarray(images, dtype=np.uint8)
    if images.ndim != 3:
        raise ValueError(f"images must be (count, rows, cols), got {images.shape}")
    return _write(path, _encode(IMAGE_MAGIC, list(images.shape), images), compress)


def write_idx_labels(path: str | Path, labels: np.ndarray, *, compress: bool = False) -> Path:
    labels = np.asarray(labels, dtype=np.uint8).reshape(-1)
    return _write(path, _encode(LABEL_MAGIC, [labels.shape[0]], labels), compress)


def _write(path: str | Path, blob: bytes, compress: bool) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if compress:
        # mtime=0 keeps the archive bytes reproducible.
        with path.open("wb") as raw, gzip.GzipFile(fileobj=raw, mode="wb", mtime=0) as handle:
            handle.write(blob)
    else:
        path.write_bytes(blob)
    return path


__all__ = [
    "IMAGE_MAGIC",
    "IMAGE_SIZE",
    "IMAGE_WIDTH",
    "IdxFormatError",
    "LABEL_MAGIC",
    "extract",
    "parse_pair",
    "read_idx_images",
    "read_idx_labels",
    "write_idx_images",
    "write_idx_labels",
]
