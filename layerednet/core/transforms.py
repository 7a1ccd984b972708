"""Feature transformers applied to raw features before the input layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Protocol

import numpy as np

from .types import Array


class FeatureTransformer(Protocol):
    """Protocol implemented by feature transformers."""

    name: str

    def transform(self, features: Array) -> Array:
        """Return the transformed copy of ``features``."""


@dataclass(frozen=True)
class IdentityTransformer:
    """Pass features through unchanged."""

    name: str = "identity"

    def transform(self, features: Array) -> Array:
        return np.array(features, dtype=np.float64, copy=True)


@dataclass(frozen=True)
class L2NormalizeTransformer:
    """Scale each feature vector to unit Euclidean length."""

    name: str = "l2_normalize"
    eps: float = 1e-12

    def transform(self, features: Array) -> Array:
        x = np.asarray(features, dtype=np.float64)
        return x / max(float(np.linalg.norm(x)), self.eps)


class TransformerRegistry:
    def __init__(self) -> None:
        self._registry: Dict[str, FeatureTransformer] = {}

    def register(self, transformer: FeatureTransformer) -> None:
        self._registry[transformer.name] = transformer

    def get(self, name: str) -> FeatureTransformer:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise KeyError(
                f"Unknown feature transformer {name!r}. Available transformers: {available}"
            ) from exc

    def resolve(self, spec: str | FeatureTransformer) -> FeatureTransformer:
        if isinstance(spec, str):
            return self.get(spec)
        return spec

    def names(self) -> Iterable[str]:
        return sorted(self._registry)


REGISTRY = TransformerRegistry()
REGISTRY.register(IdentityTransformer())
REGISTRY.register(L2NormalizeTransformer())

__all__ = [
    "FeatureTransformer",
    "IdentityTransformer",
    "L2NormalizeTransformer",
    "TransformerRegistry",
    "REGISTRY",
]
