import numpy as np
import pytest

from layerednet.core import neurons
from layerednet.core.activations import REGISTRY as ACTIVATIONS
from layerednet.core.errors import NeuronContractError
from layerednet.core.types import Instance, Synapse
from layerednet.network.model import LayeredNetworkModel


def _forward_messages():
    return [Synapse(0, 1.0, 0.5), Synapse(1, 2.0, -0.25), Synapse(2, -1.0, 0.75)]


def test_standard_neuron_weighted_sum_then_activation():
    neuron = neurons.StandardNeuron(activation=ACTIVATIONS.get("tanh"))
    neuron.forward(_forward_messages())
    assert neuron.output == pytest.approx(np.tanh(0.5 - 0.5 - 0.75))


def test_max_neuron_keeps_strongest_input():
    neuron = neurons.MaxNeuron(activation=ACTIVATIONS.get("identity"))
    neuron.forward(_forward_messages())
    assert neuron.output == pytest.approx(0.5)


def test_standard_backward_pushes_one_update_per_edge():
    neuron = neurons.StandardNeuron(
        activation=ACTIVATIONS.get("sigmoid"), learning_rate=0.5, momentum_weight=0.1
    )
    neuron.feedforward(0.8)
    messages = [Synapse(0, 0.2, 1.5, 0.4), Synapse(1, -0.1, 0.5, -0.2)]
    neuron.set_weight_vector(len(messages))
    neuron.backward(messages)

    np.testing.assert_allclose(
        neuron.weights,
        [-0.5 * 0.2 * 0.8 + 0.1 * 0.4, -0.5 * -0.1 * 0.8 + 0.1 * -0.2],
    )
    assert neuron.delta == pytest.approx((0.2 * 1.5 - 0.1 * 0.5) * 0.8 * 0.2)


def test_annealing_neuron_decays_learning_rate():
    neuron = neurons.AnnealingNeuron(learning_rate=0.4)
    assert neuron.effective_learning_rate(0) == pytest.approx(0.4)
    assert neuron.effective_learning_rate(1000) == pytest.approx(0.2)

    neuron.feedforward(1.0)
    neuron.set_weight_vector(1)
    neuron.backward([Synapse(0, 1.0, 1.0)], iteration=1000)
    assert neuron.weights[0] == pytest.approx(-0.2)


def test_weight_buffer_overrun_is_a_contract_error():
    neuron = neurons.StandardNeuron()
    neuron.set_weight_vector(2)
    neuron.push(1.0)
    neuron.push(2.0)
    with pytest.raises(NeuronContractError):
        neuron.push(3.0)


def test_weight_buffer_underrun_is_a_contract_error():
    neuron = neurons.StandardNeuron()
    neuron.set_weight_vector(3)
    neuron.push(1.0)
    with pytest.raises(NeuronContractError):
        _ = neuron.weights


def test_set_weight_vector_resets_cursor():
    neuron = neurons.StandardNeuron()
    neuron.set_weight_vector(1)
    neuron.push(9.0)
    neuron.set_weight_vector(2)
    neuron.push(1.0)
    neuron.push(2.0)
    np.testing.assert_array_equal(neuron.weights, [1.0, 2.0])


def test_base_neuron_is_abstract():
    neuron = neurons.Neuron()
    with pytest.raises(NotImplementedError):
        neuron.forward([])
    with pytest.raises(NotImplementedError):
        neuron.backward([])


class _ForgetfulNeuron(neurons.StandardNeuron):
    def backward(self, synapses, iteration=0):
        for synapse in list(synapses)[:-1]:
            self.push(0.0)
        self.backpropagate(0.0)


def test_engine_rejects_variant_breaking_the_cursor_contract(monkeypatch):
    monkeypatch.setitem(neurons.REGISTRY._registry, "forgetful", _ForgetfulNeuron)
    model = LayeredNetworkModel(seed=0)
    model.add_layer(2)
    model.add_layer(3, activation="sigmoid", neuron_class="forgetful")
    model.add_layer(1, is_final_layer=True)
    with pytest.raises(NeuronContractError):
        model.train_by_instance(Instance(np.array([0.1, 0.2]), np.array([1.0])))


def test_registry_lookup():
    assert neurons.REGISTRY.get("standard") is neurons.StandardNeuron
    assert neurons.REGISTRY.key_for(neurons.MaxNeuron) == "max"
    created = neurons.REGISTRY.create("annealing", 4, 2)
    assert isinstance(created, neurons.AnnealingNeuron)
    assert (created.id, created.layer_index) == (4, 2)
    assert set(neurons.REGISTRY.names()) >= {"standard", "max", "annealing"}
    with pytest.raises(KeyError, match="Available neuron classes"):
        neurons.REGISTRY.get("Standard")
