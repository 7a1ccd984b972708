"""Core typing contracts for LayeredNet."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Callable, Iterator

import numpy as np

Array = np.ndarray


class LearningStyle(enum.Enum):
    """Where the training labels come from."""

    SUPERVISED = "SUPERVISED"
    UNSUPERVISED = "UNSUPERVISED"


class TrainingMethod(enum.Enum):
    GRADIENT_DESCENT = "GRADIENT_DESCENT"


@dataclass(frozen=True)
class Synapse:
    """Data carried by one edge between two neurons during a pass.

    During the forward pass ``value`` is the output of the source neuron.
    During the backward pass ``value`` is the delta of the destination
    neuron and ``prev_update`` the last update applied to the edge.
    """

    index: int
    value: float
    weight: float
    prev_update: float = 0.0


class SynapseStream:
    """Re-iterable, lazily produced sequence of synapses.

    Each call to ``iter`` starts a fresh pass over the owning matrix row or
    column; nothing is materialised up front.
    """

    def __init__(self, factory: Callable[[], Iterator[Synapse]], length: int) -> None:
        self._factory = factory
        self._length = length

    def __iter__(self) -> Iterator[Synapse]:
        return self._factory()

    def __len__(self) -> int:
        return self._length


@dataclass(frozen=True)
class Instance:
    """A single training or inference example."""

    features: Array
    label: Array | None = None


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`layerednet.training.trainer.Trainer.run`."""

    steps: int
    metrics_path: str
    model_path: str = ""
    training_error: float = 0.0
