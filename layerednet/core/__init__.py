"""Core numerical primitives for LayeredNet."""

from . import activations, errors, neurons, transforms, types

__all__ = ["activations", "errors", "neurons", "transforms", "types"]
