"""Type aliases and containers for edge_training inter-module contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
import numpy.typing as npt

FloatArray = npt.NDArray[np.float32]


class Sample(NamedTuple):
    """One materialized dataset entry.

    features: 1-D float32 vector, raw pixels (C*H*W) or a bottleneck feature.
    label: 1-D float32 one-hot vector of length num_classes.
    """

    features: FloatArray
    label: FloatArray


@dataclass(frozen=True)
class Batch:
    """Rectangular group of up to ``batch_size`` samples.

    data: Float matrix of shape (rows, feature_width).
    label: Float matrix of shape (rows, num_classes).
    """

    data: FloatArray
    label: FloatArray

    @property
    def rows(self) -> int:
        return int(self.data.shape[0])


class TestStepOutput(NamedTuple):
    """Outputs of the ``test`` signature for a single batch.

    top1/top5 are counts of correct rows in the batch, not ratios.
    """

    loss: float
    top1: int
    top5: int
