"""Forward activation pass over a :class:`LayeredNetworkModel`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, List

import numpy as np

from ..core.activations import softmax
from ..core.neurons import Neuron
from ..core.types import Array, Synapse, SynapseStream

if TYPE_CHECKING:  # pragma: no cover
    from .model import LayeredNetworkModel


class ForwardPropagationEngine:
    """Drive neurons layer by layer from the input to the output layer."""

    def __init__(self, model: "LayeredNetworkModel") -> None:
        self.model = model

    def run(self, instance_with_bias: Array, iteration: int = 0) -> Array:
        """Return the output layer activations for a bias-prefixed input."""

        model = self.model
        neurons = model.neurons
        self._activate_input_layer(neurons[0], instance_with_bias)
        for from_layer in range(len(model.layer_sizes) - 1):
            self.forward(from_layer, iteration)
        final = neurons[model.final_layer_index]
        return np.array([neuron.output for neuron in final], dtype=np.float64)

    def _activate_input_layer(self, layer: List[Neuron], values: Array) -> None:
        keep = 1.0 - self.model.drop_rate
        for neuron, value in zip(layer, values):
            mask = 1.0
            if neuron.training:
                mask = float(self.model.rng.binomial(1, keep))
            neuron.dropped = mask == 0.0
            neuron.feedforward(float(value) * mask)

    def input_synapses(self, from_layer: int, row: int) -> SynapseStream:
        """Messages feeding neuron ``row`` of layer ``from_layer + 1``."""

        weights = self.model.weight_matrices[from_layer]
        source = self.model.neurons[from_layer]

        def messages() -> Iterator[Synapse]:
            for prev_id in range(weights.shape[1]):
                yield Synapse(prev_id, source[prev_id].output, float(weights[row, prev_id]))

        return SynapseStream(messages, weights.shape[1])

    def forward(self, from_layer: int, iteration: int = 0) -> None:
        """Compute the outputs of layer ``from_layer + 1``."""

        model = self.model
        cur_layer = from_layer + 1
        is_final = cur_layer == model.final_layer_index
        # Non-final layers keep their bias unit at position 0.
        offset = 0 if is_final else 1
        rows = model.weight_matrices[from_layer].shape[0]
        layer = model.neurons[cur_layer]

        for row in range(rows):
            layer[row + offset].forward(self.input_synapses(from_layer, row), iteration)

        if model.activation_functions[from_layer].is_softmax:
            raw = np.array([layer[row + offset].output for row in range(rows)])
            for row, value in enumerate(softmax(raw)):
                layer[row + offset].feedforward(value)

        if not is_final:
            layer[0].feedforward(1.0)


__all__ = ["ForwardPropagationEngine"]
