import numpy as np
import pytest

from layerednet.core.activations import sigmoid
from layerednet.core.errors import ValidationError
from layerednet.network.model import INFERENCE_BIAS, LayeredNetworkModel


def _make_model(layers, seed=0, **kwargs):
    model = LayeredNetworkModel(seed=seed, **kwargs)
    last = len(layers) - 1
    for idx, (size, activation) in enumerate(layers):
        model.add_layer(size, is_final_layer=idx == last, activation=activation)
    return model


def test_forward_matches_dense_computation():
    model = _make_model([(3, "identity"), (4, "sigmoid"), (2, "tanh")], seed=3)
    features = np.array([0.2, -0.7, 1.5])
    w0, w1 = (w.astype(np.float64) for w in model.weight_matrices)

    x = np.concatenate(([INFERENCE_BIAS], features))
    hidden = np.concatenate(([1.0], sigmoid(w0 @ x)))
    expected = np.tanh(w1 @ hidden)

    np.testing.assert_allclose(model.get_output(features), expected, rtol=1e-10, atol=1e-12)


def test_forward_is_deterministic_without_dropout():
    model = _make_model([(4, "identity"), (5, "relu"), (3, "sigmoid")], seed=9)
    features = np.array([0.3, 0.1, -0.4, 0.9])
    first = model.get_output(features)
    second = model.get_output(features)
    assert np.array_equal(first, second)


def test_hidden_bias_unit_output_is_one():
    model = _make_model([(2, "identity"), (3, "sigmoid"), (1, "sigmoid")])
    model.get_output(np.array([5.0, -5.0]))
    assert model.neuron(1, 0).output == 1.0
    assert model.neuron(0, 0).output == pytest.approx(INFERENCE_BIAS)


def test_softmax_output_layer_is_a_distribution():
    model = _make_model([(3, "identity"), (5, "softmax")], seed=4)
    for features in (np.array([1.0, 2.0, 3.0]), np.array([-40.0, 25.0, 3.0])):
        output = model.get_output(features)
        assert output.sum() == pytest.approx(1.0)
        assert np.all(output >= 0.0) and np.all(output <= 1.0)


def test_softmax_renormalises_jointly():
    model = _make_model([(2, "identity"), (3, "softmax")], seed=2)
    features = np.array([0.4, -0.1])
    raw = model.weight_matrices[0].astype(np.float64) @ np.concatenate(([INFERENCE_BIAS], features))
    expected = np.exp(raw) / np.exp(raw).sum()
    np.testing.assert_allclose(model.get_output(features), expected, rtol=1e-10, atol=1e-12)


def test_hidden_softmax_skips_bias_unit():
    model = _make_model([(2, "identity"), (3, "softmax"), (1, "identity")], seed=6)
    model.get_output(np.array([0.5, 0.25]))
    hidden = [model.neuron(1, idx).output for idx in range(1, 4)]
    assert sum(hidden) == pytest.approx(1.0)
    assert model.neuron(1, 0).output == 1.0


def test_wrong_dimension_fails_without_mutation():
    model = _make_model([(2, "identity"), (3, "sigmoid"), (1, "sigmoid")])
    before = [w.copy() for w in model.weight_matrices]
    with pytest.raises(ValidationError):
        model.get_output(np.array([1.0, 2.0, 3.0]))
    with pytest.raises(ValidationError):
        model.get_output(np.zeros((2, 1)))
    for old, new in zip(before, model.weight_matrices):
        assert np.array_equal(old, new)


def test_full_dropout_silences_input_layer():
    model = _make_model(
        [(3, "identity"), (2, "identity"), (1, "identity")], drop_rate=1.0, training=True
    )
    model.get_output(np.array([1.0, 2.0, 3.0]))
    for idx in range(4):
        neuron = model.neuron(0, idx)
        assert neuron.dropped
        assert neuron.output == 0.0
    # The bias unit is dropped too, so the hidden sums are zero.
    assert model.neuron(1, 1).output == 0.0
    assert model.neuron(1, 2).output == 0.0


def test_dropout_disabled_outside_training():
    model = _make_model([(3, "identity"), (1, "identity")], drop_rate=1.0)
    model.get_output(np.array([1.0, 2.0, 3.0]))
    assert not any(model.neuron(0, idx).dropped for idx in range(4))
    assert model.neuron(0, 2).output == 2.0


def test_partial_dropout_masks_some_units():
    model = _make_model([(200, "identity"), (1, "identity")], drop_rate=0.5, training=True, seed=1)
    model.get_output(np.ones(200))
    dropped = [model.neuron(0, idx).dropped for idx in range(201)]
    assert 40 < sum(dropped) < 160
    for idx in range(1, 201):
        expected = 0.0 if dropped[idx] else 1.0
        assert model.neuron(0, idx).output == expected


def test_input_synapse_stream_is_lazy_and_restartable():
    model = _make_model([(2, "identity"), (1, "identity")])
    model.get_output(np.array([0.5, -0.5]))
    stream = model._forward.input_synapses(0, 0)
    assert len(stream) == 3
    first = list(stream)
    second = list(stream)
    assert first == second
    assert [s.index for s in first] == [0, 1, 2]
    assert first[1].value == 0.5
    assert first[2].weight == pytest.approx(float(model.weight_matrices[0][0, 2]))
