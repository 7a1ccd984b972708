import io
import struct

import numpy as np
import pytest

from layerednet.core.errors import DeserializationError
from layerednet.core.types import Instance, LearningStyle, TrainingMethod
from layerednet.network import codec
from layerednet.network.model import LayeredNetworkModel


def _trained_model():
    model = LayeredNetworkModel(
        learning_rate=0.3,
        momentum_weight=0.2,
        regularization_weight=0.01,
        cost_function="cross_entropy",
        feature_transformer="l2_normalize",
        drop_rate=0.1,
        seed=21,
    )
    model.add_layer(3, activation="identity")
    model.add_layer(4, activation="tanh", neuron_class="annealing")
    model.add_layer(2, activation="sigmoid", neuron_class="max")
    model.add_layer(2, is_final_layer=True, activation="sigmoid")
    for step in range(5):
        model.train_online(Instance(np.array([0.2, 0.4, -0.1]), np.array([1.0, 0.0])), step)
    return model


def test_roundtrip_preserves_model_state():
    model = _trained_model()
    restored = codec.loads(codec.dumps(model))

    assert restored.layer_sizes == model.layer_sizes
    assert restored.final_layer_index == model.final_layer_index
    assert restored.neuron_classes == ["annealing", "max", "standard"]
    assert [f.name for f in restored.activation_functions] == ["tanh", "sigmoid", "sigmoid"]
    assert len(restored.weight_matrices) == len(model.weight_matrices)
    for original, decoded in zip(model.weight_matrices, restored.weight_matrices):
        assert decoded.dtype == np.float32
        assert np.array_equal(original, decoded)

    assert restored.learning_rate == model.learning_rate
    assert restored.momentum_weight == model.momentum_weight
    assert restored.regularization_weight == model.regularization_weight
    assert restored.cost_function.name == "cross_entropy"
    assert restored.feature_transformer.name == "l2_normalize"
    assert restored.learning_style is LearningStyle.SUPERVISED
    assert restored.training_method is TrainingMethod.GRADIENT_DESCENT
    assert restored.drop_rate == pytest.approx(np.float32(0.1))


def test_previous_updates_reset_to_zero():
    model = _trained_model()
    assert any(p.any() for p in model.prev_update_matrices)
    restored = codec.loads(codec.dumps(model))
    for prev, weights in zip(restored.prev_update_matrices, restored.weight_matrices):
        assert prev.shape == weights.shape
        assert not prev.any()


def test_restored_model_produces_identical_outputs():
    model = _trained_model()
    restored = codec.loads(codec.dumps(model))
    features = np.array([0.5, -0.3, 0.8])
    assert np.array_equal(model.get_output(features), restored.get_output(features))


def test_stream_dump_and_load(tmp_path):
    model = _trained_model()
    path = tmp_path / "model.bin"
    with path.open("wb") as handle:
        codec.dump(model, handle)
    with path.open("rb") as handle:
        restored = codec.load(handle)
    assert restored.layer_sizes == model.layer_sizes


def test_matrix_payload_is_big_endian_row_major():
    model = LayeredNetworkModel(seed=0)
    model.add_layer(1, activation="identity")
    model.add_layer(1, is_final_layer=True, activation="identity")
    model.set_weight_matrix(0, np.array([[1.5, -2.0]]))
    data = codec.dumps(model)
    assert data.endswith(struct.pack(">iiiff", 1, 1, 2, 1.5, -2.0))


@pytest.mark.parametrize(
    "original, replacement",
    [(b"annealing", b"annealinX"), (b"tanh", b"tanx"), (b"cross_entropy", b"cross_entropx")],
)
def test_unknown_names_fail_the_whole_load(original, replacement):
    data = codec.dumps(_trained_model())
    assert original in data
    with pytest.raises(DeserializationError):
        codec.loads(data.replace(original, replacement))


def test_truncated_payload_rejected():
    data = codec.dumps(_trained_model())
    with pytest.raises(DeserializationError):
        codec.loads(data[:-3])
    with pytest.raises(DeserializationError):
        codec.loads(b"")


def test_trailing_bytes_rejected():
    data = codec.dumps(_trained_model())
    with pytest.raises(DeserializationError):
        codec.loads(data + b"\x00")


def test_wrong_model_type_rejected():
    data = codec.dumps(_trained_model())
    with pytest.raises(DeserializationError):
        codec.loads(data.replace(b"LayeredNetworkModel", b"LayeredNetworkModeX"))


def _count_offset(data: bytes, marker: bytes) -> int:
    # The int32 count precedes the length-prefixed first string.
    return data.index(marker) - 8


def test_count_mismatch_rejected():
    model = _trained_model()
    data = bytearray(codec.dumps(model))
    offset = _count_offset(bytes(data), b"annealing")
    assert struct.unpack(">i", data[offset : offset + 4])[0] == 3
    data[offset : offset + 4] = struct.pack(">i", 2)
    with pytest.raises(DeserializationError):
        codec.loads(bytes(data))


def test_shape_mismatch_rejected():
    model = LayeredNetworkModel(seed=0)
    model.add_layer(2, activation="identity")
    model.add_layer(1, is_final_layer=True, activation="identity")
    buffer = io.BytesIO()
    codec.dump(model, buffer)
    data = buffer.getvalue()
    # Rewrite the (1, 3) matrix header as (3, 1).
    header = struct.pack(">ii", 1, 3)
    assert data.count(header) == 1
    with pytest.raises(DeserializationError):
        codec.loads(data.replace(header, struct.pack(">ii", 3, 1)))


def test_oversized_matrix_header_rejected():
    model = LayeredNetworkModel(seed=0)
    model.add_layer(2, activation="identity")
    model.add_layer(1, is_final_layer=True, activation="identity")
    data = codec.dumps(model)
    header = struct.pack(">ii", 1, 3)
    offset = data.rindex(header)
    corrupt = data[:offset] + struct.pack(">ii", 2**31 - 1, 2**31 - 1) + data[offset + 8 :]
    with pytest.raises(DeserializationError):
        codec.loads(corrupt)


def test_input_layer_without_features_rejected():
    model = LayeredNetworkModel(seed=0)
    model.add_layer(1, activation="identity")
    model.add_layer(1, is_final_layer=True, activation="identity")
    model.layer_sizes = [1, 1]
    model.weight_matrices = [np.zeros((1, 1), dtype=np.float32)]
    with pytest.raises(DeserializationError):
        codec.loads(codec.dumps(model))
