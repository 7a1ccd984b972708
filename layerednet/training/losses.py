"""Cost function registry used by the backpropagation engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import numpy as np

from ..core.types import Array

CostFn = Callable[[Array, Array], Array]

_EPS = 1e-6


@dataclass(frozen=True)
class CostFunction:
    """Elementwise cost ``C(target, actual)`` together with ``dC/d actual``."""

    name: str
    fn: CostFn
    derivative: CostFn

    def apply(self, target, actual):
        return self.fn(target, actual)

    def apply_derivative(self, target, actual):
        return self.derivative(target, actual)

    def total(self, targets: Array, outputs: Array) -> float:
        """Sum of the elementwise cost over a label/output pair."""

        targets = np.asarray(targets, dtype=np.float64)
        outputs = np.asarray(outputs, dtype=np.float64)
        return float(np.sum(self.fn(targets, outputs)))


class CostRegistry:
    """Central registry for cost functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, CostFunction] = {}

    def register(self, name: str, fn: CostFn, derivative: CostFn) -> None:
        self._registry[name] = CostFunction(name, fn, derivative)

    def get(self, name: str) -> CostFunction:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise KeyError(f"Unknown cost function {name!r}. Available costs: {available}") from exc

    def resolve(self, spec: str | CostFunction) -> CostFunction:
        if isinstance(spec, CostFunction):
            return spec
        return self.get(spec)

    def names(self) -> Iterable[str]:
        return sorted(self._registry)


REGISTRY = CostRegistry()


def _squared_error(target, actual):
    diff = target - actual
    return 0.5 * diff * diff


def _squared_error_deriv(target, actual):
    return actual - target


def _clip(value):
    return np.clip(value, _EPS, 1.0 - _EPS)


def _cross_entropy(target, actual):
    t = _clip(target)
    a = _clip(actual)
    return -t * np.log(a) - (1.0 - t) * np.log(1.0 - a)


def _cross_entropy_deriv(target, actual):
    t = _clip(target)
    a = _clip(actual)
    return -t / a + (1.0 - t) / (1.0 - a)


def _categorical_cross_entropy(target, actual):
    return -target * np.log(_clip(actual))


def _categorical_cross_entropy_deriv(target, actual):
    # Gradient with respect to the softmax input; pairs with softmax output
    # layers, whose activation derivative is skipped when seeding deltas.
    return actual - target


REGISTRY.register("squared_error", _squared_error, _squared_error_deriv)
REGISTRY.register("cross_entropy", _cross_entropy, _cross_entropy_deriv)
REGISTRY.register(
    "categorical_cross_entropy",
    _categorical_cross_entropy,
    _categorical_cross_entropy_deriv,
)

__all__ = ["CostFunction", "CostRegistry", "REGISTRY"]
