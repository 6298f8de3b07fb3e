"""Offline-first cache for downloaded dataset files."""

from __future__ import annotations

import hashlib
import json
import os
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, MutableMapping

from .utils import resolve_cache_dir

MANIFEST_NAME = "manifest.json"


class CacheError(RuntimeError):
    """Raised when a dataset file cannot be fetched or validated."""


def offline_requested(offline: bool | None = None) -> bool:
    """Resolve offline mode from ``offline`` or ``NNSCRATCH_DATA_OFFLINE``."""

    if offline is not None:
        return bool(offline)
    return str(os.environ.get("NNSCRATCH_DATA_OFFLINE") or "1") == "1"


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class CacheManifest:
    """Provenance of every file placed in the cache directory."""

    cache_dir: Path = field(default_factory=resolve_cache_dir)
    data: MutableMapping[str, Mapping[str, object]] = field(
        init=False, default_factory=dict
    )

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self._path = self.cache_dir / MANIFEST_NAME
        self._lock = threading.Lock()
        if self._path.exists():
            try:
                self.data = json.loads(self._path.read_text())
            except json.JSONDecodeError:
                self.data = {}

    def record(self, name: str, metadata: Mapping[str, object]) -> None:
        snapshot = dict(metadata)
        snapshot.setdefault(
            "recorded_at", time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
        )
        with self._lock:
            self.data[name] = snapshot
            self._path.write_text(json.dumps(self.data, indent=2, sort_keys=True))

    def get(self, name: str) -> Mapping[str, object] | None:
        return self.data.get(name)


def fetch(
    name: str,
    url: str,
    *,
    checksum: str | None = None,
    offline_path: Path | None = None,
    offline_builder: Callable[[Path], None] | None = None,
    filename: str | None = None,
    offline: bool | None = None,
    overwrite: bool = False,
    retries: int = 2,
    manifest: CacheManifest | None = None,
    cache_dir: str | Path | None = None,
) -> tuple[Path, Mapping[str, object]]:
    """Return a local path for ``url``, downloading it into the cache if needed.

    Offline mode builds (or reuses) the fixture at ``offline_path``. Online,
    an existing cached copy is reused unless ``overwrite`` is set; failed
    downloads fall back to the offline fixture when one is available.
    """

    cache_root = resolve_cache_dir(cache_dir)
    manifest = manifest or CacheManifest(cache_root)

    if offline_requested(offline):
        if offline_path is None:
            raise CacheError(
                f"Offline mode requested for {name!r} but no offline_path provided"
            )
        path = _ensure_offline(offline_path, offline_builder)
        record = _make_record(name, url, path, None, mode="offline")
        manifest.record(name, record)
        return path, record

    target = cache_root / (filename or Path(url).name)
    if target.exists() and not overwrite:
        record = _make_record(name, url, target, None, mode="cache")
        if checksum and record["checksum"] != checksum:
            target.unlink()
        else:
            manifest.record(name, record)
            return target, record

    last_error: Exception | None = None
    for attempt in range(retries + 1):
        try:
            path = _download(url, target)
            record = _make_record(name, url, path, checksum, mode="download")
            manifest.record(name, record)
            return path, record
        except (OSError, CacheError) as exc:
            last_error = exc
            target.unlink(missing_ok=True)
            time.sleep(min(2**attempt, 5))

    if offline_path is not None:
        path = _ensure_offline(offline_path, offline_builder)
        record = _make_record(name, url, path, None, mode="offline-fallback")
        manifest.record(name, record)
        return path, record

    raise CacheError(f"Failed to fetch {name!r}: {last_error}")


def _download(url: str, target: Path) -> Path:
    import urllib.request

    target.parent.mkdir(parents=True, exist_ok=True)
    with urllib.request.urlopen(url) as response, target.open("wb") as handle:
        handle.write(response.read())
    return target


def _ensure_offline(path: Path, builder: Callable[[Path], None] | None = None) -> Path:
    if builder and not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        builder(path)
    if not path.exists():
        raise CacheError(f"Offline fixture missing: {path}")
    return path


def _make_record(
    name: str,
    url: str,
    path: Path,
    checksum: str | None,
    *,
    mode: str,
) -> Mapping[str, object]:
    digest = _sha256(path)
    if checksum and digest != checksum:
        raise CacheError(f"Checksum mismatch for {name!r}: {digest} != {checksum}")
    return {
        "name": name,
        "url": url,
        "local_path": str(path),
        "checksum": digest,
        "mode": mode,
    }


__all__ = ["CacheError", "CacheManifest", "fetch", "offline_requested"]
