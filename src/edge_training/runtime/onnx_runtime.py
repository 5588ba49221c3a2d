"""ONNX-based evaluation runtime.

Serves the ``test`` signature for full (non-bottleneck) classifiers exported
to ONNX.  ONNX Runtime cannot update weights, so ``train``, ``save`` and
``load`` are rejected.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import onnxruntime as ort
from loguru import logger

from edge_training.config import RuntimeSettings
from edge_training.errors import ConfigurationError, RuntimeInvocationError
from edge_training.runtime.base import ModelRuntime
from edge_training.types import FloatArray, TestStepOutput


def _log_softmax(logits: np.ndarray) -> np.ndarray:  # type: ignore[type-arg]
    """Row-wise log-softmax for 2-D array."""
    shifted = logits - logits.max(axis=-1, keepdims=True)
    return shifted - np.log(np.exp(shifted).sum(axis=-1, keepdims=True))


class ONNXRuntime(ModelRuntime):
    """Evaluate an ONNX classifier batch by batch.

    The graph's first input takes ``(N, C, H, W)`` float32 pixels and its
    first output is ``(N, num_classes)`` logits.

    Args:
        model_path: Path to the ``.onnx`` file.
        settings: Input shape and intra-op thread count.
    """

    def __init__(self, model_path: str | Path, settings: RuntimeSettings) -> None:
        if settings.bottleneck_size > 0:
            raise ConfigurationError(
                "ONNX models are evaluated end to end; set bottleneck_size=0",
                resource="bottleneck_size",
            )
        self.model_path = Path(model_path)
        self.settings = settings

        options = ort.SessionOptions()
        options.intra_op_num_threads = settings.num_workers
        try:
            self.session = ort.InferenceSession(
                str(self.model_path),
                sess_options=options,
                providers=ort.get_available_providers(),
            )
        except Exception as e:  # onnxruntime raises its own non-builtin types
            raise RuntimeInvocationError(
                f"Cannot load ONNX model: {e}", resource=str(self.model_path)
            ) from e
        self.input_name = self.session.get_inputs()[0].name
        logger.info(
            f"Loaded ONNX model {self.model_path.name} "
            f"(threads={settings.num_workers}, input={self.input_name})"
        )

    def _unsupported(self, signature: str) -> RuntimeInvocationError:
        return RuntimeInvocationError(
            f"ONNX runtime does not implement the '{signature}' signature",
            resource=signature,
        )

    def train_step(self, data: FloatArray, label: FloatArray) -> float:
        raise self._unsupported("train")

    def save_checkpoint(self, checkpoint_path: Path) -> None:
        raise self._unsupported("save")

    def extract_bottleneck(self, data: FloatArray) -> FloatArray:
        raise self._unsupported("load")

    def test_step(self, data: FloatArray, label: FloatArray) -> TestStepOutput:
        s = self.settings
        batch = np.ascontiguousarray(data, dtype=np.float32).reshape(
            -1, s.channel, s.height, s.width
        )
        try:
            logits = self.session.run(None, {self.input_name: batch})[0]
        except Exception as e:
            raise RuntimeInvocationError(str(e), resource="test") from e

        logits = np.asarray(logits, dtype=np.float32)
        if logits.shape != label.shape:
            raise RuntimeInvocationError(
                f"Logits shape {logits.shape} does not match labels {label.shape}",
                resource="test",
            )
        loss = float(-(label * _log_softmax(logits)).sum(axis=1).mean())
        targets = label.argmax(axis=1)
        k = min(5, logits.shape[1])
        top_k = np.argsort(-logits, axis=1, kind="stable")[:, :k]
        top1 = int((top_k[:, 0] == targets).sum())
        top5 = int((top_k == targets[:, np.newaxis]).any(axis=1).sum())
        return TestStepOutput(loss=loss, top1=top1, top5=top5)
