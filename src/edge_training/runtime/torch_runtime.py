"""TorchScript-backed model runtime.

The model file is a TorchScript module mapping a ``(N, C, H, W)`` float
batch to ``(N, num_classes)`` logits.  For bottleneck training the module
must also expose ``backbone`` and ``head`` submodules with
``forward(x) == head(backbone(x))``: the backbone is frozen and only used by
the ``load`` signature, while ``train``/``test`` run the head on cached
bottleneck features.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import torch
import torch.nn.functional as F
from loguru import logger

from edge_training.config import RuntimeSettings
from edge_training.errors import ResourceIOError, RuntimeInvocationError
from edge_training.runtime.base import ModelRuntime
from edge_training.types import FloatArray, TestStepOutput


class TorchScriptRuntime(ModelRuntime):
    """Run train/test/save/load signatures on a TorchScript module.

    Args:
        model_path: Path to the serialized TorchScript module.
        settings: Input shape, class count, thread count and SGD
            hyperparameters (``learning_rate``, ``momentum``,
            ``weight_decay``).  A learning rate of 0 opens the model
            for evaluation only.
    """

    def __init__(self, model_path: str | Path, settings: RuntimeSettings) -> None:
        self.model_path = Path(model_path)
        self.settings = settings

        torch.set_num_threads(settings.num_workers)
        try:
            self.module: torch.jit.ScriptModule = torch.jit.load(
                str(self.model_path), map_location="cpu"
            )
        except (RuntimeError, ValueError) as e:
            raise RuntimeInvocationError(
                f"Cannot load TorchScript model: {e}", resource=str(self.model_path)
            ) from e

        self._backbone: torch.nn.Module | None = None
        self._head: torch.nn.Module = self.module
        if settings.bottleneck_size > 0:
            if not (hasattr(self.module, "backbone") and hasattr(self.module, "head")):
                raise RuntimeInvocationError(
                    "bottleneck_size > 0 requires 'backbone' and 'head' submodules",
                    resource=str(self.model_path),
                )
            self._backbone = self.module.backbone
            self._head = self.module.head
            for param in self._backbone.parameters():
                param.requires_grad_(False)
            self._backbone.eval()

        params = [p for p in self._head.parameters() if p.requires_grad]
        self.optimizer: torch.optim.Optimizer | None = None
        if params and settings.learning_rate > 0:
            self.optimizer = torch.optim.SGD(
                params,
                lr=settings.learning_rate,
                momentum=settings.momentum,
                weight_decay=settings.weight_decay,
            )

        logger.info(
            f"Loaded TorchScript model {self.model_path.name} "
            f"(threads={settings.num_workers}, "
            f"bottleneck={settings.bottleneck_size}, "
            f"trainable_params={sum(p.numel() for p in params)})"
        )

    # ------------------------------------------------------------------
    # Tensor conversion
    # ------------------------------------------------------------------

    def _as_input(self, data: FloatArray) -> torch.Tensor:
        """Reshape flat feature rows into the head's input layout."""
        x = torch.from_numpy(np.ascontiguousarray(data, dtype=np.float32))
        if self._backbone is not None:
            return x.reshape(-1, self.settings.bottleneck_size)
        s = self.settings
        return x.reshape(-1, s.channel, s.height, s.width)

    def _as_target(self, label: FloatArray) -> torch.Tensor:
        return torch.from_numpy(np.ascontiguousarray(label, dtype=np.float32))

    # ------------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------------

    def train_step(self, data: FloatArray, label: FloatArray) -> float:
        if self.optimizer is None:
            raise RuntimeInvocationError(
                "Model was opened without trainable parameters or learning rate",
                resource="train",
            )
        try:
            x, y = self._as_input(data), self._as_target(label)
            self._head.train()
            self.optimizer.zero_grad()
            logits = self._head(x)
            loss = F.cross_entropy(logits, y)
            loss.backward()
            self.optimizer.step()
            return float(loss.item())
        except RuntimeError as e:
            raise RuntimeInvocationError(str(e), resource="train") from e

    def test_step(self, data: FloatArray, label: FloatArray) -> TestStepOutput:
        try:
            x, y = self._as_input(data), self._as_target(label)
            self._head.eval()
            with torch.no_grad():
                logits = self._head(x)
                loss = F.cross_entropy(logits, y)
                targets = y.argmax(dim=1)
                k = min(5, logits.shape[1])
                top_k = logits.topk(k, dim=1).indices
                top1 = int((top_k[:, 0] == targets).sum().item())
                top5 = int((top_k == targets.unsqueeze(1)).any(dim=1).sum().item())
            return TestStepOutput(loss=float(loss.item()), top1=top1, top5=top5)
        except RuntimeError as e:
            raise RuntimeInvocationError(str(e), resource="test") from e

    def save_checkpoint(self, checkpoint_path: Path) -> None:
        try:
            torch.jit.save(self.module, str(checkpoint_path))
        except OSError as e:
            raise ResourceIOError(
                f"Cannot write checkpoint: {e}", resource=str(checkpoint_path)
            ) from e
        except RuntimeError as e:
            raise RuntimeInvocationError(str(e), resource="save") from e

    def extract_bottleneck(self, data: FloatArray) -> FloatArray:
        if self._backbone is None:
            raise RuntimeInvocationError(
                "Model was opened without a bottleneck backbone", resource="load"
            )
        s = self.settings
        try:
            x = torch.from_numpy(np.ascontiguousarray(data, dtype=np.float32))
            with torch.no_grad():
                feature = self._backbone(x.reshape(1, s.channel, s.height, s.width))
            return feature.reshape(-1).numpy().astype(np.float32, copy=False)
        except RuntimeError as e:
            raise RuntimeInvocationError(str(e), resource="load") from e
