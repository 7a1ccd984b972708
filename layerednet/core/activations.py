"""Activation functions and the registry that resolves them by name."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from .types import Array

ScalarFn = Callable[[Array], Array]


@dataclass(frozen=True)
class ActivationFunction:
    """Activation paired with its derivative.

    ``derivative`` is expressed in terms of the activation *output*, which is
    the only value a neuron keeps after the forward pass.
    """

    name: str
    fn: ScalarFn
    derivative: ScalarFn

    def apply(self, value):
        return self.fn(value)

    def apply_derivative(self, output):
        return self.derivative(output)

    @property
    def is_softmax(self) -> bool:
        return self.name == "softmax"


class ActivationRegistry:
    """Central registry for activation functions, keyed case-insensitively."""

    def __init__(self) -> None:
        self._registry: Dict[str, ActivationFunction] = {}

    def register(self, name: str, fn: ScalarFn, derivative: ScalarFn) -> None:
        key = name.lower()
        self._registry[key] = ActivationFunction(key, fn, derivative)

    def alias(self, alias: str, name: str) -> None:
        self._registry[alias.lower()] = self._registry[name.lower()]

    def get(self, name: str) -> ActivationFunction:
        try:
            return self._registry[name.lower()]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise KeyError(
                f"Unknown activation {name!r}. Available activations: {available}"
            ) from exc

    def resolve(self, spec: str | ActivationFunction) -> ActivationFunction:
        if isinstance(spec, ActivationFunction):
            return spec
        return self.get(spec)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._registry


REGISTRY = ActivationRegistry()


def identity(x: Array) -> Array:
    return x


def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))


def tanh(x: Array) -> Array:
    return np.tanh(x)


def relu(x: Array) -> Array:
    """Return the ReLU activation."""

    return np.maximum(x, 0.0)


def softmax(z: Array) -> Array:
    """Jointly normalise ``z`` into a probability distribution."""

    z = np.asarray(z, dtype=np.float64)
    e = np.exp(z - z.max())
    return e / e.sum()


REGISTRY.register("identity", identity, lambda y: np.ones_like(y, dtype=np.float64))
REGISTRY.register("sigmoid", sigmoid, lambda y: y * (1.0 - y))
REGISTRY.register("tanh", tanh, lambda y: 1.0 - y * y)
REGISTRY.register("relu", relu, lambda y: (np.asarray(y) > 0.0).astype(np.float64))
# Per-neuron part of softmax is the identity; the joint normalisation happens
# in the forward engine once the whole layer is known.
REGISTRY.register("softmax", identity, lambda y: y * (1.0 - y))
REGISTRY.alias("linear", "identity")
REGISTRY.alias("logistic", "sigmoid")

__all__ = [
    "ActivationFunction",
    "ActivationRegistry",
    "REGISTRY",
    "identity",
    "sigmoid",
    "tanh",
    "relu",
    "softmax",
]
