"""Neuron contract and the built-in neuron variants.

A neuron only ever sees a stream of :class:`~layerednet.core.types.Synapse`
messages. During the forward pass it turns them into ``output``; during the
backward pass it turns them into ``delta`` and one weight update per edge,
pushed into a buffer that the backward engine resets before every call with
:meth:`Neuron.set_weight_vector`.
"""

from __future__ import annotations

from typing import Dict, Iterable, Type

import numpy as np

from .activations import REGISTRY as ACTIVATIONS
from .activations import ActivationFunction
from .errors import NeuronContractError
from .types import Array, Synapse


class Neuron:
    """Base neuron holding the state shared by every variant."""

    def __init__(
        self,
        neuron_id: int = 0,
        layer_index: int = 0,
        activation: ActivationFunction | None = None,
        *,
        learning_rate: float = 0.1,
        momentum_weight: float = 0.0,
        training: bool = False,
    ) -> None:
        self.id = neuron_id
        self.layer_index = layer_index
        self.activation = activation or ACTIVATIONS.get("identity")
        self.learning_rate = learning_rate
        self.momentum_weight = momentum_weight
        self.training = training
        self.dropped = False
        self.output = 0.0
        self.delta = 0.0
        self._buffer: Array = np.zeros(0, dtype=np.float64)
        self._cursor = 0

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self.id}, layer={self.layer_index}, "
            f"output={self.output:.6g}, delta={self.delta:.6g})"
        )

    # ------------------------------------------------------------------
    # Contract

    def forward(self, synapses: Iterable[Synapse], iteration: int = 0) -> None:
        raise NotImplementedError

    def backward(self, synapses: Iterable[Synapse], iteration: int = 0) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # State helpers used by variants and engines

    def feedforward(self, value: float) -> None:
        self.output = float(value)

    def backpropagate(self, gradient: float) -> None:
        self.delta = float(gradient)

    def set_weight_vector(self, expected_count: int) -> None:
        """Reset the weight-update buffer to ``expected_count`` empty slots."""

        self._buffer = np.zeros(expected_count, dtype=np.float64)
        self._cursor = 0

    def push(self, update: float) -> None:
        if self._cursor >= self._buffer.shape[0]:
            raise NeuronContractError(
                f"Neuron {self.id} at layer {self.layer_index} pushed more than "
                f"{self._buffer.shape[0]} weight updates"
            )
        self._buffer[self._cursor] = update
        self._cursor += 1

    @property
    def weights(self) -> Array:
        """Return the filled weight-update buffer."""

        if self._cursor != self._buffer.shape[0]:
            raise NeuronContractError(
                f"Neuron {self.id} at layer {self.layer_index} pushed "
                f"{self._cursor} of {self._buffer.shape[0]} weight updates"
            )
        return self._buffer


class StandardNeuron(Neuron):
    """Weighted sum followed by the layer activation; plain gradient descent."""

    def forward(self, synapses: Iterable[Synapse], iteration: int = 0) -> None:
        total = 0.0
        for synapse in synapses:
            total += synapse.value * synapse.weight
        self.feedforward(self.activation.apply(total))

    def effective_learning_rate(self, iteration: int) -> float:
        return self.learning_rate

    def backward(self, synapses: Iterable[Synapse], iteration: int = 0) -> None:
        if self.dropped:
            for _ in synapses:
                self.push(0.0)
            self.backpropagate(0.0)
            return

        rate = self.effective_learning_rate(iteration)
        gradient = 0.0
        for synapse in synapses:
            gradient += synapse.value * synapse.weight
            self.push(
                -rate * synapse.value * self.output
                + self.momentum_weight * synapse.prev_update
            )
        self.backpropagate(gradient * self.activation.apply_derivative(self.output))


class MaxNeuron(StandardNeuron):
    """Pooling-style neuron: keeps the strongest weighted input."""

    def forward(self, synapses: Iterable[Synapse], iteration: int = 0) -> None:
        strongest = max(
            (synapse.value * synapse.weight for synapse in synapses), default=0.0
        )
        self.feedforward(self.activation.apply(strongest))


class AnnealingNeuron(StandardNeuron):
    """Gradient descent whose learning rate decays with the iteration count."""

    decay = 1e-3

    def effective_learning_rate(self, iteration: int) -> float:
        return self.learning_rate / (1.0 + self.decay * max(0, iteration))


class NeuronRegistry:
    """Closed mapping from stable string keys to neuron constructors."""

    def __init__(self) -> None:
        self._registry: Dict[str, Type[Neuron]] = {}

    def register(self, name: str, cls: Type[Neuron]) -> None:
        self._registry[name] = cls

    def get(self, name: str) -> Type[Neuron]:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(self.names())
            raise KeyError(
                f"Unknown neuron class {name!r}. Available neuron classes: {available}"
            ) from exc

    def key_for(self, cls: Type[Neuron]) -> str:
        for name, registered in self._registry.items():
            if registered is cls:
                return name
        raise KeyError(f"Neuron class {cls.__name__} is not registered")

    def create(self, name: str, *args, **kwargs) -> Neuron:
        return self.get(name)(*args, **kwargs)

    def names(self):
        return sorted(self._registry)

    def __contains__(self, name: str) -> bool:
        return name in self._registry


REGISTRY = NeuronRegistry()
REGISTRY.register("standard", StandardNeuron)
REGISTRY.register("max", MaxNeuron)
REGISTRY.register("annealing", AnnealingNeuron)

__all__ = [
    "Neuron",
    "StandardNeuron",
    "MaxNeuron",
    "AnnealingNeuron",
    "NeuronRegistry",
    "REGISTRY",
]
