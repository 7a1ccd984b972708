"""Deterministic local training loop for layered networks."""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import List, Mapping, Sequence

import numpy as np

from ..core.errors import ValidationError
from ..core.types import Array, Instance, RunResult
from ..network import codec
from ..network.model import LayeredNetworkModel

logger = logging.getLogger(__name__)


class Trainer:
    """Run mini-batch training the way a parameter-merging host would.

    Every instance of a batch computes its updates against the same weights;
    the updates are summed, applied once and kept as the previous updates
    used for momentum.
    """

    def __init__(
        self,
        model: LayeredNetworkModel,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.model = model
        self.callbacks = list(callbacks or [])
        self.iteration = 0

    def run(
        self,
        instances: Sequence[Instance],
        epochs: int,
        seed: int,
        *,
        batch_size: int = 1,
        shuffle: bool = True,
        determinism: bool = True,
        early_stopping_patience: int | None = None,
        checkpoint_dir: str | Path | None = None,
    ) -> RunResult:
        if not instances:
            raise ValidationError("Cannot train on an empty instance list")
        if batch_size <= 0:
            raise ValidationError("batch_size must be positive")

        self._set_seed(seed, determinism)
        rng = np.random.default_rng(seed)
        self.model.set_training(True)

        best_loss = float("inf")
        epochs_no_improve = 0
        total_steps = 0
        epoch_loss = 0.0
        try:
            for epoch in range(1, epochs + 1):
                order = rng.permutation(len(instances)) if shuffle else np.arange(len(instances))
                errors: List[float] = []
                for start in range(0, len(order), batch_size):
                    batch = [instances[int(i)] for i in order[start : start + batch_size]]
                    errors.extend(self._train_batch(batch))
                    total_steps += 1

                epoch_loss = float(np.mean(errors))
                self._emit_epoch(epoch, {"loss": epoch_loss})
                logger.info("epoch %d training error %.6f", epoch, epoch_loss)

                if epoch_loss < best_loss - 1e-9:
                    best_loss = epoch_loss
                    epochs_no_improve = 0
                else:
                    epochs_no_improve += 1
                    if early_stopping_patience and epochs_no_improve >= early_stopping_patience:
                        logger.info("early stopping after %d epochs", epoch)
                        break
        finally:
            self.model.set_training(False)

        model_path = ""
        if checkpoint_dir is not None:
            model_path = str(self._save_checkpoint(Path(checkpoint_dir) / "last.model"))
        return RunResult(
            steps=total_steps,
            metrics_path="",
            model_path=model_path,
            training_error=epoch_loss,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_batch(self, batch: Sequence[Instance]) -> List[float]:
        model = self.model
        # Every instance of the batch sees the momentum of the last merge.
        prev_updates = model.prev_update_matrices
        merged: List[Array] = model.train_by_instance(batch[0], iteration=self.iteration)
        errors: List[float] = [model.training_error]
        for instance in batch[1:]:
            model.prev_update_matrices = prev_updates
            updates = model.train_by_instance(instance, iteration=self.iteration)
            errors.append(model.training_error)
            model.merge_updates(merged, updates)
        model.update_weight_matrices(merged)
        model.prev_update_matrices = [m.copy() for m in merged]
        self.iteration += 1
        return errors

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    @staticmethod
    def _set_seed(seed: int, determinism: bool) -> None:
        if determinism:
            random.seed(seed)
            np.random.seed(seed)

    def _save_checkpoint(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as handle:
            codec.dump(self.model, handle)
        return path


__all__ = ["Trainer"]
