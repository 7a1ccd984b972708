"""Configuration-driven model assembly and training runs."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import replace
from pathlib import Path
from typing import Dict, Mapping, Sequence

import yaml

from .. import data
from ..core.errors import ValidationError
from ..core.types import RunResult
from ..network.model import LayeredNetworkModel
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from .trainer import Trainer

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-mlp": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "layers": [
                {"size": 2},
                {"size": 4, "activation": "sigmoid"},
                {"size": 1, "activation": "sigmoid"},
            ],
            "learning_rate": 0.5,
            "momentum_weight": 0.1,
            "cost": "squared_error",
        },
        "train": {
            "epochs": 3000,
            "batch_size": 1,
            "seed": 7,
            "run_dir": "runs/xor-mlp",
            "enable_plots": False,
        },
    },
    "linear-regression": {
        "data": {"name": "linear", "options": {"n_points": 64, "seed": 0}},
        "model": {
            "layers": [{"size": 1}, {"size": 1, "activation": "identity"}],
            "learning_rate": 0.05,
            "cost": "squared_error",
        },
        "train": {
            "epochs": 50,
            "batch_size": 1,
            "seed": 0,
            "run_dir": "runs/linear-regression",
            "enable_plots": False,
        },
    },
    "autoencoder": {
        "data": {"name": "one_hot", "options": {"dim": 4, "repeats": 4}},
        "model": {
            "layers": [
                {"size": 4},
                {"size": 3, "activation": "sigmoid"},
                {"size": 4, "activation": "sigmoid"},
            ],
            "learning_rate": 0.5,
            "momentum_weight": 0.2,
            "cost": "cross_entropy",
            "learning_style": "unsupervised",
        },
        "train": {
            "epochs": 400,
            "batch_size": 1,
            "seed": 3,
            "run_dir": "runs/autoencoder",
            "enable_plots": False,
        },
    },
    "softmax-blobs": {
        "data": {"name": "blobs", "options": {"n_per_class": 16, "n_classes": 3, "seed": 1}},
        "model": {
            "layers": [
                {"size": 2},
                {"size": 8, "activation": "tanh"},
                {"size": 3, "activation": "softmax"},
            ],
            "learning_rate": 0.1,
            "momentum_weight": 0.1,
            "cost": "categorical_cross_entropy",
        },
        "train": {
            "epochs": 60,
            "batch_size": 4,
            "seed": 11,
            "run_dir": "runs/softmax-blobs",
            "enable_plots": False,
        },
    },
}

_REQUIRED_SECTIONS = {"data", "model", "train"}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        available = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown preset {name!r}. Available presets: {available}") from exc


def load_config(path: str | Path) -> Mapping[str, object]:
    """Read a run configuration from a YAML or JSON file."""

    path = Path(path)
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        config = yaml.safe_load(text) or {}
    elif suffix == ".json":
        config = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(config, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    missing = _REQUIRED_SECTIONS - set(config)
    if missing:
        raise KeyError(f"Config {path.name} is missing required sections: {', '.join(sorted(missing))}")
    return config


def build_model(model_cfg: Mapping[str, object], seed: int | None = None) -> LayeredNetworkModel:
    """Create a model from the ``model`` section of a run configuration.

    ``layers`` lists the input layer first and the output layer last; every
    entry takes ``size`` and optionally ``activation`` and ``neuron``.
    """

    layers = model_cfg.get("layers")
    if not isinstance(layers, Sequence) or len(layers) < 2:
        raise ValidationError("model.layers needs at least an input and an output layer")

    model = LayeredNetworkModel(
        learning_rate=float(model_cfg.get("learning_rate", 0.1)),
        momentum_weight=float(model_cfg.get("momentum_weight", 0.0)),
        regularization_weight=float(model_cfg.get("regularization_weight", 0.0)),
        cost_function=str(model_cfg.get("cost", "squared_error")),
        learning_style=str(model_cfg.get("learning_style", "supervised")),
        training_method=str(model_cfg.get("training_method", "gradient_descent")),
        feature_transformer=str(model_cfg.get("feature_transformer", "identity")),
        drop_rate=float(model_cfg.get("drop_rate", 0.0)),
        seed=seed,
    )
    last = len(layers) - 1
    for idx, layer in enumerate(layers):
        model.add_layer(
            int(layer["size"]),
            is_final_layer=idx == last,
            activation=str(layer.get("activation", "sigmoid")),
            neuron_class=str(layer.get("neuron", "standard")),
        )
    return model


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    seed = int(train_cfg.get("seed", 0))
    instances = data.get(str(data_cfg["name"]), **dict(data_cfg.get("options", {})))
    model = build_model(model_cfg, seed=seed)

    run_dir = Path(str(train_cfg.get("run_dir", f"runs/{data_cfg['name']}")))
    run_dir.mkdir(parents=True, exist_ok=True)

    _print_startup_summary(
        dataset_name=str(data_cfg["name"]),
        layer_sizes=model.layer_sizes,
        activations=[f.name for f in model.activation_functions],
        cost=model.cost_function.name,
        learning_style=model.learning_style.value,
        instances=len(instances),
    )

    jsonl = JsonlSink(run_dir / "metrics.jsonl", seed=seed, layer_sizes=model.layer_sizes)
    csv_sink = CsvSink(run_dir / "metrics.csv")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    early_stopping = train_cfg.get("early_stopping_patience")
    trainer = Trainer(model, callbacks=[jsonl, csv_sink, plots])
    result = trainer.run(
        instances,
        epochs=int(train_cfg.get("epochs", 1)),
        seed=seed,
        batch_size=int(train_cfg.get("batch_size", 1)),
        shuffle=bool(train_cfg.get("shuffle", True)),
        early_stopping_patience=int(early_stopping) if early_stopping is not None else None,
        checkpoint_dir=run_dir,
    )
    plots.close()
    return replace(result, metrics_path=str(jsonl.path))


def _print_startup_summary(
    *,
    dataset_name: str,
    layer_sizes: Sequence[int],
    activations: Sequence[str],
    cost: str,
    learning_style: str,
    instances: int,
) -> None:
    print("=== LayeredNet run ===")
    print(f"Dataset       : {dataset_name} ({instances} instances)")
    print(f"Layer sizes   : {list(layer_sizes)}")
    print(f"Activations   : {list(activations)}")
    print(f"Cost          : {cost}")
    print(f"Learning style: {learning_style}")
    print("======================")


__all__ = ["build_model", "load_config", "load_preset", "presets", "run_pipeline"]
