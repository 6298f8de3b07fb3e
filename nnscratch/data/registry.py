"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, MutableMapping

from ..core.types import LabeledExample


@dataclass(frozen=True)
class DatasetSpec:
    """A loaded dataset ready for training.

    Attributes
    ----------
    name:
        Registry identifier of the dataset.
    train, test:
        Ordered, immutable :class:`LabeledExample` records.
    input_width:
        Length of every ``features`` vector.
    num_classes:
        Length of every one-hot ``label`` vector.
    provenance:
        Where the data came from (download, cache or offline fixture) and the
        options it was built with. Stored verbatim in the run manifest.
    """

    name: str
    train: List[LabeledExample]
    test: List[LabeledExample]
    input_width: int
    num_classes: int
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def splits(self) -> Dict[str, int]:
        return {"train": len(self.train), "test": len(self.test)}


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("mnist")
        def build_mnist(**kwargs):
            ...

    or directly::

        register_dataset("mnist", build_mnist)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(
    dataset: str,
    /,
    *,
    offline: bool = True,
    cache_dir: str | Path | None = None,
    **options: Any,
) -> DatasetSpec:
    """Build the dataset registered under ``dataset``."""

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset: {dataset!r}. Available datasets: {available}")

    factory = _REGISTRY[dataset]
    spec = factory(offline=offline, cache_dir=cache_dir, **options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.input_width <= 0 or spec.num_classes <= 0:
        raise ValueError(
            f"Dataset {spec.name!r} has invalid widths "
            f"({spec.input_width} inputs, {spec.num_classes} classes)"
        )
    if not spec.train:
        raise ValueError(f"Dataset {spec.name!r} has an empty train split")
    # Only the first record is checked; loaders are trusted for the rest.
    first = spec.train[0]
    if first.features.shape[0] != spec.input_width:
        raise ValueError(
            f"Dataset {spec.name!r} declares {spec.input_width} inputs but the "
            f"first example has {first.features.shape[0]}"
        )
    if first.label.shape[0] != spec.num_classes:
        raise ValueError(
            f"Dataset {spec.name!r} declares {spec.num_classes} classes but the "
            f"first label has {first.label.shape[0]} entries"
        )


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
