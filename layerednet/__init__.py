"""LayeredNet public API."""

from .core import activations, errors, neurons, transforms, types  # noqa: F401
from .core.errors import (
    DeserializationError,
    NeuronContractError,
    UnsupportedConfigurationError,
    ValidationError,
)
from .core.types import Instance, LearningStyle, Synapse, TrainingMethod
from .network import codec
from .network.codec import ModelCodec
from .network.model import LayeredNetworkModel
from .training.pipelines import build_model, load_config, load_preset, presets, run_pipeline
from .training.trainer import Trainer

__all__ = [
    "DeserializationError",
    "Instance",
    "LayeredNetworkModel",
    "LearningStyle",
    "ModelCodec",
    "NeuronContractError",
    "Synapse",
    "Trainer",
    "TrainingMethod",
    "UnsupportedConfigurationError",
    "ValidationError",
    "activations",
    "build_model",
    "codec",
    "errors",
    "load_config",
    "load_preset",
    "neurons",
    "presets",
    "run_pipeline",
    "transforms",
    "types",
]
