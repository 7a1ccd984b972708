"""Layered feed-forward network model.

The model owns the topology (layer sizes, one weight matrix per layer
boundary, activations and neuron variants) and a per-(layer, position) arena
of neurons that the forward and backward engines drive. It covers linear and
logistic regression, multilayer perceptrons and autoencoder-style models.
"""

from __future__ import annotations

import enum
import logging
from typing import List, Sequence, Type, TypeVar

import numpy as np

from ..core.activations import REGISTRY as ACTIVATIONS
from ..core.activations import ActivationFunction
from ..core.errors import UnsupportedConfigurationError, ValidationError
from ..core.neurons import REGISTRY as NEURONS
from ..core.neurons import Neuron
from ..core.transforms import REGISTRY as TRANSFORMERS
from ..core.transforms import FeatureTransformer
from ..core.types import Array, Instance, LearningStyle, TrainingMethod
from ..training.losses import REGISTRY as COSTS
from ..training.losses import CostFunction
from .backward import BackpropagationEngine
from .forward import ForwardPropagationEngine

logger = logging.getLogger(__name__)

# Bias fed to the input layer at inference time; slightly below 1.0.
INFERENCE_BIAS = 0.99999
TRAINING_BIAS = 1.0

E = TypeVar("E", bound=enum.Enum)


def as_enum(enum_cls: Type[E], value: E | str) -> E:
    """Coerce ``value`` into ``enum_cls`` or fail with a configuration error."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).upper())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise UnsupportedConfigurationError(
            f"Unsupported {enum_cls.__name__} {value!r}; expected one of {allowed}"
        ) from exc


def _as_vector(values, what: str) -> Array:
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1:
        raise ValidationError(f"{what} must be a 1-D vector, got shape {vector.shape}")
    return vector


class LayeredNetworkModel:
    """Fully-connected layered network trained by per-neuron message passing."""

    def __init__(
        self,
        *,
        learning_rate: float = 0.1,
        momentum_weight: float = 0.0,
        regularization_weight: float = 0.0,
        cost_function: str | CostFunction = "squared_error",
        learning_style: LearningStyle | str = LearningStyle.SUPERVISED,
        training_method: TrainingMethod | str = TrainingMethod.GRADIENT_DESCENT,
        feature_transformer: str | FeatureTransformer = "identity",
        drop_rate: float = 0.0,
        training: bool = False,
        seed: int | None = None,
    ) -> None:
        self.learning_rate = float(learning_rate)
        self.momentum_weight = float(momentum_weight)
        self.regularization_weight = float(regularization_weight)
        self.cost_function = COSTS.resolve(cost_function)
        self.learning_style = as_enum(LearningStyle, learning_style)
        # Resolved lazily so an unsupported method only fails the training call.
        self.training_method = training_method
        self.feature_transformer = TRANSFORMERS.resolve(feature_transformer)
        self.drop_rate = 0.0
        self.set_drop_rate(drop_rate)
        self.training = bool(training)
        self.training_error = 0.0

        self.layer_sizes: List[int] = []
        self.weight_matrices: List[Array] = []
        self.prev_update_matrices: List[Array] = []
        self.activation_functions: List[ActivationFunction] = []
        self.neuron_classes: List[str] = []
        self.final_layer_index = -1

        self.rng = np.random.default_rng(seed)
        self._neurons: List[List[Neuron]] | None = None
        self._forward = ForwardPropagationEngine(self)
        self._backward = BackpropagationEngine(self)

    def __repr__(self) -> str:
        return (
            f"LayeredNetworkModel(layer_sizes={self.layer_sizes}, "
            f"activations={[f.name for f in self.activation_functions]}, "
            f"neurons={self.neuron_classes})"
        )

    # ------------------------------------------------------------------
    # Topology

    def add_layer(
        self,
        size: int,
        is_final_layer: bool = False,
        activation: str | ActivationFunction = "sigmoid",
        neuron_class: str = "standard",
    ) -> int:
        """Append a layer and return its index.

        Non-final layers receive one extra bias unit at position 0. For every
        layer after the first a weight matrix of shape ``(size, previous)`` is
        drawn uniformly from ``[-0.5, 0.5)``.
        """

        if size <= 0:
            raise ValidationError("Size of layer must be larger than 0.")
        if self._neurons is not None:
            raise ValidationError("Topology cannot change once the neurons are built")
        if self.final_layer_index >= 0:
            raise ValidationError("Cannot add a layer after the final layer")
        if is_final_layer and not self.layer_sizes:
            raise ValidationError("The input layer cannot be the final layer")

        function = self._resolve_activation(activation)
        if neuron_class not in NEURONS:
            available = ", ".join(NEURONS.names())
            raise ValidationError(
                f"Unknown neuron class {neuron_class!r}. Available neuron classes: {available}"
            )

        if not is_final_layer:
            if not self.layer_sizes:
                logger.info("add input layer: %d neurons", size)
            else:
                logger.info("add hidden layer: %d neurons", size)
            size += 1

        self.layer_sizes.append(size)
        layer_idx = len(self.layer_sizes) - 1
        if is_final_layer:
            self.final_layer_index = layer_idx
            logger.info("add output layer: %d neurons", size)

        if layer_idx > 0:
            rows = size if is_final_layer else size - 1
            cols = self.layer_sizes[layer_idx - 1]
            weights = self.rng.random((rows, cols), dtype=np.float32) - np.float32(0.5)
            self.weight_matrices.append(weights)
            self.prev_update_matrices.append(np.zeros((rows, cols), dtype=np.float32))
            self.activation_functions.append(function)
            self.neuron_classes.append(neuron_class)
        return layer_idx

    def restore_layers(
        self,
        layer_sizes: Sequence[int],
        final_layer_index: int,
        activations: Sequence[str | ActivationFunction],
        neuron_classes: Sequence[str],
        weight_matrices: Sequence[Array],
    ) -> None:
        """Install a complete topology at once, e.g. when decoding a model."""

        sizes = [int(s) for s in layer_sizes]
        boundaries = len(sizes) - 1
        if boundaries < 1:
            raise ValidationError("A model needs at least an input and an output layer")
        if not (len(weight_matrices) == len(activations) == len(neuron_classes) == boundaries):
            raise ValidationError(
                f"Expected {boundaries} weight matrices, activations and neuron classes, got "
                f"{len(weight_matrices)}, {len(activations)} and {len(neuron_classes)}"
            )
        # Non-final sizes include the bias unit.
        for idx, size in enumerate(sizes):
            minimum = 1 if idx == boundaries else 2
            if size < minimum:
                raise ValidationError(f"Layer {idx} has size {size}, expected at least {minimum}")
        if final_layer_index != boundaries:
            raise ValidationError(
                f"Final layer index {final_layer_index} does not match {len(sizes)} layers"
            )
        matrices = [np.array(m, dtype=np.float32) for m in weight_matrices]
        for idx, matrix in enumerate(matrices):
            dest = idx + 1
            rows = sizes[dest] if dest == final_layer_index else sizes[dest] - 1
            if matrix.shape != (rows, sizes[idx]):
                raise ValidationError(
                    f"Weight matrix {idx} has shape {matrix.shape}, expected {(rows, sizes[idx])}"
                )
        for name in neuron_classes:
            if name not in NEURONS:
                raise ValidationError(f"Unknown neuron class {name!r}")

        self.layer_sizes = sizes
        self.final_layer_index = int(final_layer_index)
        self.activation_functions = [self._resolve_activation(a) for a in activations]
        self.neuron_classes = list(neuron_classes)
        self.weight_matrices = matrices
        self.prev_update_matrices = [np.zeros_like(m) for m in matrices]
        self._neurons = None

    @staticmethod
    def _resolve_activation(activation: str | ActivationFunction) -> ActivationFunction:
        try:
            return ACTIVATIONS.resolve(activation)
        except KeyError as exc:
            raise ValidationError(str(exc.args[0])) from exc

    def _check_complete(self) -> None:
        if self.final_layer_index < 1:
            raise ValidationError("The model has no output layer; add a final layer first")

    # ------------------------------------------------------------------
    # Neuron arena

    @property
    def neurons(self) -> List[List[Neuron]]:
        """Neurons indexed by ``[layer_index][neuron_index]``, built on first use."""

        if self._neurons is None:
            self._neurons = self._build_neurons()
        return self._neurons

    def neuron(self, layer_index: int, neuron_index: int) -> Neuron:
        return self.neurons[layer_index][neuron_index]

    def _build_neurons(self) -> List[List[Neuron]]:
        self._check_complete()
        arena: List[List[Neuron]] = []
        for layer_idx, size in enumerate(self.layer_sizes):
            if layer_idx == 0:
                neuron_class = "standard"
                function = ACTIVATIONS.get("identity")
            else:
                neuron_class = self.neuron_classes[layer_idx - 1]
                function = self.activation_functions[layer_idx - 1]
            arena.append(
                [
                    NEURONS.create(
                        neuron_class,
                        idx,
                        layer_idx,
                        function,
                        learning_rate=self.learning_rate,
                        momentum_weight=self.momentum_weight,
                        training=self.training,
                    )
                    for idx in range(size)
                ]
            )
        return arena

    def set_training(self, training: bool) -> None:
        self.training = bool(training)
        if self._neurons is not None:
            for layer in self._neurons:
                for neuron in layer:
                    neuron.training = self.training

    def set_drop_rate(self, drop_rate: float) -> None:
        """Set the drop-out rate of the input layer."""

        if not 0.0 <= drop_rate <= 1.0:
            raise ValidationError(f"Drop rate must be within [0, 1], got {drop_rate}")
        self.drop_rate = float(drop_rate)

    # ------------------------------------------------------------------
    # Weights

    def weights_by_layer(self, index: int) -> Array:
        return self.weight_matrices[index]

    def activation(self, index: int) -> ActivationFunction:
        return self.activation_functions[index]

    def set_weight_matrix(self, index: int, matrix: Array) -> None:
        if not 0 <= index < len(self.weight_matrices):
            raise ValidationError(
                f"index [{index}] should be in range[0, {len(self.weight_matrices)})."
            )
        matrix = np.array(matrix, dtype=np.float32)
        if matrix.shape != self.weight_matrices[index].shape:
            raise ValidationError(
                f"Weight matrix {index} must have shape {self.weight_matrices[index].shape}"
            )
        self.weight_matrices[index] = matrix

    def update_weight_matrices(self, deltas: Sequence[Array]) -> None:
        """Add one update matrix onto each weight matrix."""

        if len(deltas) != len(self.weight_matrices):
            raise ValidationError(
                f"Expected {len(self.weight_matrices)} update matrices, got {len(deltas)}"
            )
        for idx, delta in enumerate(deltas):
            self.weight_matrices[idx] = (self.weight_matrices[idx] + delta).astype(np.float32)

    @staticmethod
    def merge_updates(dest: List[Array], source: Sequence[Array]) -> List[Array]:
        """Add ``source`` onto ``dest`` pairwise and return ``dest``."""

        if len(dest) != len(source):
            raise ValidationError(f"Cannot merge {len(source)} matrices into {len(dest)}")
        for idx, matrix in enumerate(source):
            dest[idx] = dest[idx] + matrix
        return dest

    # ------------------------------------------------------------------
    # Passes

    def get_output(self, features: Array, iteration: int = 0) -> Array:
        """Return the output layer activations for ``features``."""

        self._check_complete()
        vector = _as_vector(features, "Instance")
        expected = self.layer_sizes[0] - 1
        if vector.shape[0] != expected:
            raise ValidationError(f"The dimension of input instance should be {expected}.")
        transformed = self.feature_transformer.transform(vector)
        with_bias = np.concatenate(([INFERENCE_BIAS], transformed))
        return self._forward.run(with_bias, iteration=iteration)

    def train_by_instance(self, instance: Instance, iteration: int = 0) -> List[Array]:
        """Run one forward/backward pass and return the weight updates.

        The weights themselves are left untouched; apply the result with
        :meth:`update_weight_matrices` (possibly after merging several).
        """

        # Only gradient descent exists; anything else fails here.
        as_enum(TrainingMethod, self.training_method)
        self._check_complete()
        features = _as_vector(instance.features, "Training features")
        input_dim = self.layer_sizes[0] - 1
        output_dim = self.layer_sizes[self.final_layer_index]
        if features.shape[0] != input_dim:
            raise ValidationError(
                f"The dimension of training instance is {features.shape[0]}, "
                f"but requires {input_dim}."
            )

        label: Array | None = None
        if self.learning_style is LearningStyle.SUPERVISED:
            if instance.label is None:
                raise ValidationError("Supervised training requires a label")
            label = _as_vector(instance.label, "Training label")
            if label.shape[0] != output_dim:
                raise ValidationError(
                    f"The dimension of the label is {label.shape[0]}, but requires {output_dim}."
                )
        elif output_dim != input_dim:
            raise ValidationError(
                f"Unsupervised models must reproduce their input: output size "
                f"{output_dim} differs from input size {input_dim}"
            )

        transformed = self.feature_transformer.transform(features)
        if label is None:
            label = np.array(transformed, dtype=np.float64, copy=True)
        with_bias = np.concatenate(([TRAINING_BIAS], transformed))
        output = self._forward.run(with_bias, iteration=iteration)
        self.training_error = self.cost_function.total(label, output)
        logger.debug("iteration %d training error %.6f", iteration, self.training_error)

        return self._backward.run(label, iteration=iteration)

    def train_online(self, instance: Instance, iteration: int = 0) -> List[Array]:
        """Train on one instance and immediately apply the updates."""

        updates = self.train_by_instance(instance, iteration=iteration)
        self.update_weight_matrices(updates)
        return updates


__all__ = ["LayeredNetworkModel", "INFERENCE_BIAS", "TRAINING_BIAS", "as_enum"]
