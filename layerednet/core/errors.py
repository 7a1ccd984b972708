"""Exception hierarchy shared by the LayeredNet modules."""

from __future__ import annotations


class LayeredNetError(Exception):
    """Base class for all LayeredNet errors."""


class ValidationError(LayeredNetError, ValueError):
    """Invalid layer size, instance dimension or matrix index."""


class UnsupportedConfigurationError(LayeredNetError, ValueError):
    """The requested training method or mode is not implemented."""


class DeserializationError(LayeredNetError, ValueError):
    """A serialized model could not be decoded."""


class NeuronContractError(LayeredNetError, RuntimeError):
    """A neuron filled its weight buffer with the wrong number of values."""


__all__ = [
    "LayeredNetError",
    "ValidationError",
    "UnsupportedConfigurationError",
    "DeserializationError",
    "NeuronContractError",
]
