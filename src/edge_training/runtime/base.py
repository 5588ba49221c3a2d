"""Abstract base class for model runtimes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from edge_training.types import FloatArray, TestStepOutput


class ModelRuntime(ABC):
    """Opaque numerical executor behind four named signatures.

    ``train`` and ``test`` consume one batch (``data`` rows x feature width,
    ``label`` rows x num_classes); ``save`` writes a checkpoint; ``load``
    maps one raw pixel tensor to a bottleneck feature.  Implementations wrap
    backend failures in :class:`RuntimeInvocationError`.
    """

    @abstractmethod
    def train_step(self, data: FloatArray, label: FloatArray) -> float:
        """Run the ``train`` signature on one batch and return its loss."""

    @abstractmethod
    def test_step(self, data: FloatArray, label: FloatArray) -> TestStepOutput:
        """Run the ``test`` signature on one batch.

        Returns the batch loss and the number of rows whose true class is
        the top-1 / among the top-5 predictions.
        """

    @abstractmethod
    def save_checkpoint(self, checkpoint_path: Path) -> None:
        """Run the ``save`` signature, writing the model to ``checkpoint_path``."""

    @abstractmethod
    def extract_bottleneck(self, data: FloatArray) -> FloatArray:
        """Run the ``load`` signature on one raw pixel tensor."""
