"""Epoch/batch training loop with an exponentially smoothed loss."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from loguru import logger

from edge_training.data.batching import build_batches
from edge_training.errors import RuntimeInvocationError
from edge_training.runtime.base import ModelRuntime
from edge_training.types import Sample


class LossSmoother:
    """Exponentially weighted moving loss.

    The first observed loss seeds the value; every later loss ``L`` updates
    it as ``S = (1 - decay) * S + decay * L``.

    Args:
        decay: Weight of the newest loss, in ``[0, 1]``.
    """

    def __init__(self, decay: float) -> None:
        self.decay = decay
        self.value = 0.0
        self.count = 0

    def update(self, loss: float) -> float:
        if self.count == 0:
            self.value = loss
        else:
            self.value = (1 - self.decay) * self.value + self.decay * loss
        self.count += 1
        return self.value


def compute_utility(last_loss: float, dataset_size: int) -> float:
    """Client-selection priority: squared last batch loss times dataset size."""
    return last_loss * last_loss * dataset_size


@dataclass(frozen=True)
class TrainLoopOutcome:
    """Loss statistics of a completed training loop."""

    moving_loss: float
    last_loss: float
    trained_size: int
    steps: int


def _check_loss(loss: object, epoch: int, batch_idx: int) -> float:
    try:
        value = float(loss)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise RuntimeInvocationError(
            f"Loss is not a scalar: {loss!r}", resource="train"
        ) from e
    if not math.isfinite(value):
        raise RuntimeInvocationError(
            f"Non-finite loss {value} at epoch {epoch} batch {batch_idx}",
            resource="train",
        )
    return value


def run_training(
    runtime: ModelRuntime,
    samples: Sequence[Sample],
    *,
    epochs: int,
    batch_size: int,
    loss_decay: float,
    rng: np.random.Generator | None = None,
) -> TrainLoopOutcome:
    """Train for ``epochs`` passes over ``samples``.

    Every epoch reshuffles the samples and rebuilds the batches before
    invoking the ``train`` signature once per batch.  Failures propagate
    immediately; nothing is retried.

    Returns:
        Smoothed loss, last batch loss and ``epochs * len(samples)``.
    """
    if rng is None:
        rng = np.random.default_rng()
    smoother = LossSmoother(loss_decay)
    last_loss = 0.0

    for epoch in range(epochs):
        batches = build_batches(samples, batch_size, shuffle=True, rng=rng)
        for batch_idx, batch in enumerate(batches):
            last_loss = _check_loss(
                runtime.train_step(batch.data, batch.label), epoch, batch_idx
            )
            smoother.update(last_loss)
            logger.info(
                f"[train][epoch][{epoch}][batch][{batch_idx}][loss][{last_loss:.6f}]"
            )

    return TrainLoopOutcome(
        moving_loss=smoother.value,
        last_loss=last_loss,
        trained_size=epochs * len(samples),
        steps=smoother.count,
    )
