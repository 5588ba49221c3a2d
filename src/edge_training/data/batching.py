"""Shuffle-then-partition batch construction.

Batches are rebuilt from scratch every epoch: each one owns freshly
allocated ``data``/``label`` matrices sized to its real row count, and row
``i`` of both matrices comes from the same sample.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

import numpy as np

from edge_training.errors import ConfigurationError
from edge_training.types import Batch, Sample


def num_batches(num_samples: int, batch_size: int) -> int:
    """Number of batches for ``num_samples``, i.e. ``ceil(N / B)``."""
    if batch_size <= 0:
        raise ConfigurationError(
            f"batch_size must be positive, got {batch_size}", resource="batch_size"
        )
    return math.ceil(num_samples / batch_size)


def build_batches(
    samples: Sequence[Sample],
    batch_size: int,
    *,
    shuffle: bool = False,
    rng: np.random.Generator | None = None,
) -> list[Batch]:
    """Partition ``samples`` into consecutive batches of ``batch_size`` rows.

    Args:
        samples: Materialized dataset.  Never mutated.
        batch_size: Maximum rows per batch; the last batch may be short.
        shuffle: Permute the samples uniformly before partitioning.
            Only the training loop shuffles.
        rng: Source of the permutation; pass a seeded generator for
            reproducible epochs.

    Returns:
        ``ceil(len(samples) / batch_size)`` batches, empty for no samples.
    """
    total = num_batches(len(samples), batch_size)
    if total == 0:
        return []

    if shuffle:
        if rng is None:
            rng = np.random.default_rng()
        order = rng.permutation(len(samples))
    else:
        order = np.arange(len(samples))

    batches: list[Batch] = []
    for start in range(0, len(samples), batch_size):
        group = [samples[i] for i in order[start : start + batch_size]]
        data = np.stack([s.features for s in group]).astype(np.float32, copy=False)
        label = np.stack([s.label for s in group]).astype(np.float32, copy=False)
        batches.append(Batch(data=data, label=label))
    return batches
