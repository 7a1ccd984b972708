"""Backpropagation pass producing per-boundary weight-update matrices."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, List

import numpy as np

from ..core.types import Array, Synapse, SynapseStream

if TYPE_CHECKING:  # pragma: no cover
    from .model import LayeredNetworkModel


class BackpropagationEngine:
    """Drive neurons in reverse layer order after a forward pass."""

    def __init__(self, model: "LayeredNetworkModel") -> None:
        self.model = model

    def run(self, labels: Array, iteration: int = 0) -> List[Array]:
        """Return one update matrix per layer boundary.

        The updates are also recorded as the model's previous updates so the
        next instance can apply momentum.
        """

        model = self.model
        updates = [np.zeros(w.shape, dtype=np.float32) for w in model.weight_matrices]
        self._seed_output_deltas(labels)
        for layer in range(len(model.layer_sizes) - 2, -1, -1):
            self.backward(layer, updates[layer], iteration)
        model.prev_update_matrices = [u.copy() for u in updates]
        return updates

    def _seed_output_deltas(self, labels: Array) -> None:
        model = self.model
        activation = model.activation_functions[-1]
        last_weights = model.weight_matrices[-1]
        cost = model.cost_function
        for idx, neuron in enumerate(model.neurons[model.final_layer_index]):
            derivative = float(cost.apply_derivative(float(labels[idx]), neuron.output))
            derivative += model.regularization_weight * float(last_weights[idx].sum())
            # Softmax's Jacobian is folded into its paired cost derivative.
            if not activation.is_softmax:
                derivative *= float(activation.apply_derivative(neuron.output))
            neuron.backpropagate(derivative)

    def error_synapses(self, cur_layer: int, row: int) -> SynapseStream:
        """Messages from layer ``cur_layer + 1`` back to neuron ``row``."""

        model = self.model
        weights = model.weight_matrices[cur_layer]
        prev_updates = model.prev_update_matrices[cur_layer]
        next_layer = model.neurons[cur_layer + 1]
        offset = 0 if cur_layer + 1 == model.final_layer_index else 1

        def messages() -> Iterator[Synapse]:
            for dest_id in range(weights.shape[0]):
                yield Synapse(
                    dest_id,
                    next_layer[dest_id + offset].delta,
                    float(weights[dest_id, row]),
                    float(prev_updates[dest_id, row]),
                )

        return SynapseStream(messages, weights.shape[0])

    def backward(self, cur_layer: int, update_matrix: Array, iteration: int = 0) -> None:
        """Fill ``update_matrix`` column by column from layer ``cur_layer``."""

        rows, cols = self.model.weight_matrices[cur_layer].shape
        layer = self.model.neurons[cur_layer]
        for row in range(cols):
            neuron = layer[row]
            neuron.set_weight_vector(rows)
            neuron.backward(self.error_synapses(cur_layer, row), iteration)
            update_matrix[:, row] = neuron.weights


__all__ = ["BackpropagationEngine"]
