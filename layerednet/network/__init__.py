"""Layered network model, propagation engines and persistence."""

from .backward import BackpropagationEngine
from .codec import ModelCodec
from .forward import ForwardPropagationEngine
from .model import LayeredNetworkModel

__all__ = [
    "BackpropagationEngine",
    "ForwardPropagationEngine",
    "LayeredNetworkModel",
    "ModelCodec",
]
