"""Shared pytest fixtures for edge_training tests."""

from collections.abc import Callable, Iterable
from pathlib import Path

import numpy as np
import pytest
import torch
from PIL import Image
from torch import nn

from edge_training.config import RuntimeSettings
from edge_training.errors import RuntimeInvocationError
from edge_training.runtime.base import ModelRuntime
from edge_training.types import FloatArray, Sample, TestStepOutput


class RecordingRuntime(ModelRuntime):
    """In-memory runtime double that records every signature call.

    Args:
        losses: Losses returned by successive ``train`` calls (cycled).
        test_outputs: Outputs returned by successive ``test`` calls.  When
            exhausted or omitted, every row counts as correct.
        checkpoint_bytes: Content written by ``save``.
        fail_on: Signature name that raises instead of running.
    """

    def __init__(
        self,
        losses: Iterable[float] = (1.0,),
        test_outputs: Iterable[TestStepOutput] = (),
        checkpoint_bytes: bytes = b"ckpt-bytes",
        fail_on: str | None = None,
    ) -> None:
        self.losses = list(losses)
        self.test_outputs = list(test_outputs)
        self.checkpoint_bytes = checkpoint_bytes
        self.fail_on = fail_on
        self.calls: list[str] = []
        self.inputs: list[tuple[FloatArray, FloatArray]] = []
        self.checkpoint_paths: list[Path] = []
        self.bottleneck_size = 4

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeInvocationError(f"{name} signature failed", resource=name)

    def train_step(self, data: FloatArray, label: FloatArray) -> float:
        self._record("train")
        self.inputs.append((data.copy(), label.copy()))
        return self.losses[(self.calls.count("train") - 1) % len(self.losses)]

    def test_step(self, data: FloatArray, label: FloatArray) -> TestStepOutput:
        self._record("test")
        self.inputs.append((data.copy(), label.copy()))
        idx = self.calls.count("test") - 1
        if idx < len(self.test_outputs):
            return self.test_outputs[idx]
        rows = data.shape[0]
        return TestStepOutput(loss=0.5, top1=rows, top5=rows)

    def save_checkpoint(self, checkpoint_path: Path) -> None:
        self._record("save")
        self.checkpoint_paths.append(checkpoint_path)
        checkpoint_path.write_bytes(self.checkpoint_bytes)

    def extract_bottleneck(self, data: FloatArray) -> FloatArray:
        self._record("load")
        return np.full(self.bottleneck_size, float(data.mean()), dtype=np.float32)


@pytest.fixture()
def recording_runtime() -> RecordingRuntime:
    return RecordingRuntime()


@pytest.fixture()
def runtime_factory(
    recording_runtime: RecordingRuntime,
) -> Callable[[Path, RuntimeSettings], ModelRuntime]:
    """Factory returning ``recording_runtime``; records what it was asked to open."""

    def _factory(model_path: Path, settings: RuntimeSettings) -> ModelRuntime:
        recording_runtime.calls.append("open")
        recording_runtime.bottleneck_size = settings.bottleneck_size or 4
        return recording_runtime

    return _factory


def make_samples(
    num_samples: int, num_classes: int = 3, width: int = 4
) -> list[Sample]:
    """Samples whose first feature equals their class id, for row-pairing checks."""
    samples = []
    for i in range(num_samples):
        class_id = i % num_classes
        features = np.full(width, float(i), dtype=np.float32)
        features[0] = float(class_id)
        label = np.zeros(num_classes, dtype=np.float32)
        label[class_id] = 1.0
        samples.append(Sample(features=features, label=label))
    return samples


@pytest.fixture()
def sample_factory() -> Callable[..., list[Sample]]:
    return make_samples


@pytest.fixture()
def runtime_cls() -> type[RecordingRuntime]:
    return RecordingRuntime


@pytest.fixture()
def tmp_client_dir(tmp_path: Path) -> Path:
    """Minimal client directory in the on-device layout.

    Structure:
    - images/img_<i>.png: 6 non-square RGB images (40x30), class = i % 3
    - train.txt / test.txt: ``"<relative-path> <class-id>"`` per line
    - model.pt: placeholder model file (opened by the runtime factory)
    """
    images = tmp_path / "images"
    images.mkdir()
    lines: list[str] = []
    for i in range(6):
        cls = i % 3
        fname = f"img_{i}.png"
        img = Image.new("RGB", (40, 30), color=(cls * 80, 100, 150))
        img.save(images / fname)
        lines.append(f"{fname} {cls}")

    (tmp_path / "train.txt").write_text("\n".join(lines) + "\n")
    (tmp_path / "test.txt").write_text("\n".join(lines) + "\n")
    (tmp_path / "model.pt").write_bytes(b"placeholder")
    return tmp_path


class TinyNet(nn.Module):
    """Backbone + head classifier small enough for CPU unit tests."""

    def __init__(
        self, channels: int, size: int, bottleneck: int, num_classes: int
    ) -> None:
        super().__init__()
        self.backbone = nn.Sequential(
            nn.Flatten(),
            nn.Linear(channels * size * size, bottleneck),
            nn.ReLU(),
        )
        self.head = nn.Linear(bottleneck, num_classes)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.head(self.backbone(x))


@pytest.fixture()
def torchscript_model(tmp_path: Path) -> Path:
    """Scripted TinyNet for 3x8x8 inputs, bottleneck 6, 3 classes."""
    torch.manual_seed(0)
    net = TinyNet(channels=3, size=8, bottleneck=6, num_classes=3)
    module = torch.jit.script(net)
    path = tmp_path / "tiny.pt"
    torch.jit.save(module, str(path))
    return path


@pytest.fixture()
def tiny_settings() -> RuntimeSettings:
    return RuntimeSettings(
        num_workers=1,
        num_classes=3,
        channel=3,
        height=8,
        width=8,
        learning_rate=0.1,
        momentum=0.9,
        weight_decay=1e-4,
    )
