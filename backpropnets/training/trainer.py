"""Deterministic mini-batch training loop for backpropnets."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import List, Mapping, Sequence

import numpy as np

from ..core.errors import ConfigurationError, ShapeError, check_columns
from ..core.network import Network
from ..core.types import Array, HistoryRecord, TrainParams
from ..data.utils import batch_indices, validation_split
from .metrics import compute_metrics

logger = logging.getLogger(__name__)

_HUGE = np.finfo(np.float64).max


def resolve_train_params(params: TrainParams | Mapping[str, object] | None) -> TrainParams:
    """Build a :class:`TrainParams` from a record or a plain mapping and validate it."""

    if params is None:
        params = TrainParams()
    elif not isinstance(params, TrainParams):
        known = set(asdict(TrainParams()))
        unknown = set(params) - known
        if unknown:
            raise ConfigurationError(f"Unknown training parameters: {sorted(unknown)}")
        params = TrainParams(**params)  # type: ignore[arg-type]
    if int(params.n_epochs) < 1:
        raise ConfigurationError("n_epochs must be a positive integer")
    if int(params.batch_size) < 1:
        raise ConfigurationError("batch_size must be a positive integer")
    if not 0 <= params.val_prop < 1:
        raise ConfigurationError("val_prop must be in [0, 1)")
    if params.patience is not None and int(params.patience) < 1:
        raise ConfigurationError("patience must be a positive integer or None")
    if params.min_delta < 0:
        raise ConfigurationError("min_delta must be non-negative")
    return params


class Trainer:
    """Run epochs of shuffled mini-batch gradient descent on a :class:`Network`.

    The training history lives on the network, so a new ``Trainer`` around an
    already trained network keeps appending to it.
    """

    def __init__(
        self,
        network: Network,
        rng: np.random.Generator | int | None = None,
        callbacks: Sequence[object] | None = None,
        metric_names: Sequence[str] = (),
        verbose: bool = False,
    ) -> None:
        self.network = network
        if rng is None:
            rng = network.rng
        elif not isinstance(rng, np.random.Generator):
            rng = np.random.default_rng(rng)
        self.rng = rng
        self.callbacks = list(callbacks or [])
        self.metric_names = list(metric_names)
        self.verbose = verbose
        self.stopped_early = False
        self.best_epoch: int | None = None

    def train(
        self,
        inputs: Array,
        targets: Array,
        params: TrainParams | Mapping[str, object] | None = None,
    ) -> List[HistoryRecord]:
        """Train in place and return the history records added by this call."""

        params = resolve_train_params(params)
        X = np.asarray(inputs, dtype=np.float64)
        Y = np.asarray(targets, dtype=np.float64)
        meta = self.network.get_meta()
        check_columns(X, meta.n_in, "X")
        check_columns(Y, meta.n_out, "Y")
        if X.shape[0] != Y.shape[0]:
            raise ShapeError(f"X has {X.shape[0]} rows but Y has {Y.shape[0]}")

        split = validation_split(X.shape[0], params.val_prop, self.rng)
        X_train, Y_train = X[split.train], Y[split.train]
        X_val, Y_val = X[split.val], Y[split.val]
        has_val = split.val.size > 0
        if params.drop_last and params.batch_size > split.train.size:
            raise ConfigurationError(
                f"batch_size={params.batch_size} exceeds the {split.train.size} training "
                "observations and drop_last would discard every batch"
            )

        self.stopped_early = False
        self.best_epoch = None
        best_loss = float("inf")
        best_state: Mapping[str, Array] | None = None
        if params.patience is not None:
            # the parameters at the start of this call are the baseline to beat
            best_state = self.network.state_dict()
            best_loss = (
                self.network.loss_value(X_val, Y_val)
                if has_val
                else self.network.loss_value(X_train, Y_train)
            )
        epochs_no_improve = 0
        first_epoch = self.network.history[-1].epoch + 1 if self.network.history else 1
        added: List[HistoryRecord] = []

        for epoch in range(first_epoch, first_epoch + params.n_epochs):
            batches = batch_indices(
                np.arange(split.train.size), params.batch_size, self.rng, drop_last=params.drop_last
            )
            batch_losses = [self._train_batch(X_train[idx], Y_train[idx]) for idx in batches]
            with np.errstate(over="ignore"):
                train_loss = float(min(np.mean(batch_losses), _HUGE))
            val_loss = self.network.loss_value(X_val, Y_val) if has_val else None

            record = HistoryRecord(
                epoch=epoch, batch=len(batches), train_loss=train_loss, val_loss=val_loss
            )
            self.network.history.append(record)
            added.append(record)
            self._emit_epoch(record, X_train, Y_train, X_val, Y_val)

            if params.patience is None:
                continue
            monitored = val_loss if val_loss is not None else train_loss
            if np.isfinite(monitored) and monitored < best_loss - params.min_delta:
                best_loss = monitored
                best_state = self.network.state_dict()
                self.best_epoch = epoch
                epochs_no_improve = 0
            else:
                epochs_no_improve += 1
                if epochs_no_improve >= params.patience:
                    self.stopped_early = True
                    break

        if self.stopped_early and best_state is not None:
            self.network.load_state_dict(best_state)
            if self.best_epoch is None:
                logger.info(
                    "Early stopping after epoch %d; no epoch improved, restored the initial parameters",
                    added[-1].epoch,
                )
            else:
                logger.info(
                    "Early stopping after epoch %d; restored parameters from epoch %d",
                    added[-1].epoch,
                    self.best_epoch,
                )
        return added

    # ------------------------------------------------------------------
    # Internal helpers

    def _train_batch(self, X: Array, Y: Array) -> float:
        outputs = self.network.forward(X)
        loss = self.network.loss.eval(Y, outputs)
        self.network.backward(Y, outputs)
        return loss

    def _emit_epoch(
        self,
        record: HistoryRecord,
        X_train: Array,
        Y_train: Array,
        X_val: Array,
        Y_val: Array,
    ) -> None:
        metrics = {"loss": record.train_loss}
        if record.val_loss is not None:
            metrics["val_loss"] = record.val_loss
        if self.metric_names:
            metrics.update(
                compute_metrics(self.metric_names, self.network.predict(X_train), Y_train)
            )
            if X_val.shape[0]:
                val_metrics = compute_metrics(
                    self.metric_names, self.network.predict(X_val), Y_val
                )
                metrics.update({f"val_{k}": v for k, v in val_metrics.items()})

        log = logger.info if self.verbose else logger.debug
        if record.val_loss is None:
            log("epoch %d: train loss %.6f", record.epoch, record.train_loss)
        else:
            log(
                "epoch %d: train loss %.6f, validation loss %.6f",
                record.epoch,
                record.train_loss,
                record.val_loss,
            )
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(record.epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(record.epoch, metrics)


__all__ = ["Trainer", "resolve_train_params"]
