"""Binary persistence for :class:`LayeredNetworkModel`.

Layout (big-endian, strings are an ``int32`` byte length followed by UTF-8)::

    model type                       string
    learning rate                    float64
    momentum weight                  float64
    regularization weight            float64
    cost function                    string
    learning style                   string
    training method                  string
    feature transformer              string
    layer count, layer sizes         int32, int32 * n
    final layer index                int32
    drop rate                        float32
    neuron class count, names        int32, string * n
    activation count, names          int32, string * n
    matrix count, matrices           int32, (rows int32, cols int32,
                                             row-major float32 payload) * n

Previous-update matrices are not stored; they come back as zeros.
"""

from __future__ import annotations

import io
import logging
import struct
from typing import BinaryIO, List

import numpy as np

from ..core.activations import REGISTRY as ACTIVATIONS
from ..core.errors import (
    DeserializationError,
    UnsupportedConfigurationError,
    ValidationError,
)
from ..core.neurons import REGISTRY as NEURONS
from ..core.transforms import REGISTRY as TRANSFORMERS
from ..core.types import Array, LearningStyle, TrainingMethod
from ..training.losses import REGISTRY as COSTS
from .model import LayeredNetworkModel, as_enum

logger = logging.getLogger(__name__)

MODEL_TYPE = "LayeredNetworkModel"

_INT = struct.Struct(">i")
_FLOAT = struct.Struct(">f")
_DOUBLE = struct.Struct(">d")


class _Writer:
    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def int(self, value: int) -> None:
        self.stream.write(_INT.pack(int(value)))

    def float(self, value: float) -> None:
        self.stream.write(_FLOAT.pack(float(value)))

    def double(self, value: float) -> None:
        self.stream.write(_DOUBLE.pack(float(value)))

    def string(self, value: str) -> None:
        payload = value.encode("utf-8")
        self.int(len(payload))
        self.stream.write(payload)

    def matrix(self, matrix: Array) -> None:
        rows, cols = matrix.shape
        self.int(rows)
        self.int(cols)
        self.stream.write(np.ascontiguousarray(matrix, dtype=">f4").tobytes())


class _Reader:
    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def _exact(self, size: int) -> bytes:
        try:
            data = self.stream.read(size)
        except (OverflowError, MemoryError) as exc:
            raise DeserializationError(f"Cannot read {size} bytes of model data") from exc
        if len(data) != size:
            raise DeserializationError(
                f"Unexpected end of model data: wanted {size} bytes, got {len(data)}"
            )
        return data

    def int(self) -> int:
        return _INT.unpack(self._exact(_INT.size))[0]

    def count(self, what: str) -> int:
        value = self.int()
        if value < 0:
            raise DeserializationError(f"Negative {what} count: {value}")
        return value

    def float(self) -> float:
        return _FLOAT.unpack(self._exact(_FLOAT.size))[0]

    def double(self) -> float:
        return _DOUBLE.unpack(self._exact(_DOUBLE.size))[0]

    def string(self) -> str:
        size = self.count("string byte")
        try:
            return self._exact(size).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DeserializationError("Malformed UTF-8 string in model data") from exc

    def matrix(self) -> Array:
        rows = self.count("matrix row")
        cols = self.count("matrix column")
        payload = self._exact(rows * cols * 4)
        return np.frombuffer(payload, dtype=">f4").reshape(rows, cols).astype(np.float32)


def _lookup(registry, name: str, what: str):
    try:
        return registry.get(name)
    except KeyError as exc:
        raise DeserializationError(f"Unknown {what} {name!r} in model data") from exc


class ModelCodec:
    """Encode and decode the full model state."""

    def dump(self, model: LayeredNetworkModel, stream: BinaryIO) -> None:
        out = _Writer(stream)
        out.string(MODEL_TYPE)
        out.double(model.learning_rate)
        out.double(model.momentum_weight)
        out.double(model.regularization_weight)
        out.string(model.cost_function.name)
        out.string(model.learning_style.value)
        out.string(as_enum(TrainingMethod, model.training_method).value)
        out.string(model.feature_transformer.name)
        out.int(len(model.layer_sizes))
        for size in model.layer_sizes:
            out.int(size)

        out.int(model.final_layer_index)
        out.float(model.drop_rate)

        out.int(len(model.neuron_classes))
        for name in model.neuron_classes:
            out.string(name)

        out.int(len(model.activation_functions))
        for function in model.activation_functions:
            out.string(function.name)

        out.int(len(model.weight_matrices))
        for matrix in model.weight_matrices:
            out.matrix(matrix)
        logger.info("encoded model with layer sizes %s", model.layer_sizes)

    def load(self, stream: BinaryIO) -> LayeredNetworkModel:
        src = _Reader(stream)
        model_type = src.string()
        if model_type != MODEL_TYPE:
            raise DeserializationError(f"Unsupported model type {model_type!r}")
        learning_rate = src.double()
        momentum_weight = src.double()
        regularization_weight = src.double()
        cost = _lookup(COSTS, src.string(), "cost function")
        style_name = src.string()
        method_name = src.string()
        transformer = _lookup(TRANSFORMERS, src.string(), "feature transformer")
        layer_sizes = [src.int() for _ in range(src.count("layer"))]

        final_layer_index = src.int()
        drop_rate = src.float()

        neuron_classes: List[str] = []
        for _ in range(src.count("neuron class")):
            name = src.string()
            _lookup(NEURONS, name, "neuron class")
            neuron_classes.append(name)

        activations = [
            _lookup(ACTIVATIONS, src.string(), "activation function")
            for _ in range(src.count("activation function"))
        ]

        matrices = [src.matrix() for _ in range(src.count("weight matrix"))]

        try:
            model = LayeredNetworkModel(
                learning_rate=learning_rate,
                momentum_weight=momentum_weight,
                regularization_weight=regularization_weight,
                cost_function=cost,
                learning_style=as_enum(LearningStyle, style_name),
                training_method=as_enum(TrainingMethod, method_name),
                feature_transformer=transformer,
                drop_rate=drop_rate,
            )
            model.restore_layers(
                layer_sizes, final_layer_index, activations, neuron_classes, matrices
            )
        except (ValidationError, UnsupportedConfigurationError) as exc:
            raise DeserializationError(f"Inconsistent model data: {exc}") from exc
        logger.info("decoded model with layer sizes %s", layer_sizes)
        return model

    def dumps(self, model: LayeredNetworkModel) -> bytes:
        buffer = io.BytesIO()
        self.dump(model, buffer)
        return buffer.getvalue()

    def loads(self, data: bytes) -> LayeredNetworkModel:
        buffer = io.BytesIO(data)
        model = self.load(buffer)
        if buffer.read(1):
            raise DeserializationError("Trailing bytes after model data")
        return model


_CODEC = ModelCodec()
dump = _CODEC.dump
load = _CODEC.load
dumps = _CODEC.dumps
loads = _CODEC.loads

__all__ = ["ModelCodec", "MODEL_TYPE", "dump", "load", "dumps", "loads"]
