"""Pure in-memory synthetic datasets expressed as training instances."""

from __future__ import annotations

from typing import Callable, Iterable, List, MutableMapping

import numpy as np

from ..core.types import Array, Instance

InstanceFactory = Callable[..., List[Instance]]

_REGISTRY: MutableMapping[str, InstanceFactory] = {}


def register_dataset(name: str) -> Callable[[InstanceFactory], InstanceFactory]:
    """Register a dataset factory under ``name``::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...
    """

    def decorator(factory: InstanceFactory) -> InstanceFactory:
        if name in _REGISTRY:
            raise ValueError(f"Dataset {name!r} is already registered")
        _REGISTRY[name] = factory
        return factory

    return decorator


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def get(name: str, **options: object) -> List[Instance]:
    try:
        factory = _REGISTRY[name]
    except KeyError as exc:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset {name!r}. Available datasets: {available}") from exc
    return factory(**options)


def from_arrays(features: Array, labels: Array | None = None) -> List[Instance]:
    """Pair the rows of ``features`` and ``labels`` into instances."""

    x = np.asarray(features, dtype=np.float64)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    if labels is None:
        return [Instance(features=row) for row in x]
    y = np.asarray(labels, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    if y.shape[0] != x.shape[0]:
        raise ValueError(f"Got {x.shape[0]} feature rows but {y.shape[0]} label rows")
    return [Instance(features=f, label=t) for f, t in zip(x, y)]


@register_dataset("xor")
def make_xor(**_: object) -> List[Instance]:
    x = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = np.array([[0.0], [1.0], [1.0], [0.0]])
    return from_arrays(x, y)


@register_dataset("linear")
def make_linear(
    n_points: int = 64,
    slope: float = 0.5,
    intercept: float = -0.2,
    noise: float = 0.01,
    seed: int = 0,
    **_: object,
) -> List[Instance]:
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = slope * x + intercept + noise * rng.standard_normal(size=x.shape)
    return from_arrays(x, y)


@register_dataset("sine")
def make_sine(freq: int = 1, n_points: int = 64, seed: int = 0, **_: object) -> List[Instance]:
    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = 0.5 + 0.4 * np.sin(freq * np.pi * x) + 0.01 * rng.standard_normal(size=x.shape)
    return from_arrays(x, y)


@register_dataset("one_hot")
def make_one_hot(dim: int = 4, repeats: int = 1, **_: object) -> List[Instance]:
    """Unit vectors for autoencoders; labels are left empty."""

    eye = np.tile(np.eye(dim), (repeats, 1))
    return from_arrays(eye)


@register_dataset("blobs")
def make_blobs(
    n_per_class: int = 16,
    n_classes: int = 3,
    dim: int = 2,
    spread: float = 0.15,
    seed: int = 0,
    **_: object,
) -> List[Instance]:
    """Gaussian clusters with one-hot labels."""

    rng = np.random.default_rng(seed)
    centres = rng.uniform(-1.0, 1.0, size=(n_classes, dim))
    features = []
    labels = []
    for cls, centre in enumerate(centres):
        features.append(centre + spread * rng.standard_normal(size=(n_per_class, dim)))
        labels.append(np.tile(np.eye(n_classes)[cls], (n_per_class, 1)))
    return from_arrays(np.vstack(features), np.vstack(labels))
