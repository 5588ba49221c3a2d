"""Select a model runtime from the model file."""

from __future__ import annotations

from pathlib import Path

from edge_training.config import RuntimeSettings
from edge_training.errors import ResourceIOError
from edge_training.runtime.base import ModelRuntime
from edge_training.runtime.onnx_runtime import ONNXRuntime
from edge_training.runtime.torch_runtime import TorchScriptRuntime


def open_runtime(model_path: Path, settings: RuntimeSettings) -> ModelRuntime:
    """Open ``model_path`` with the runtime matching its suffix.

    ``.onnx`` files get the evaluation-only :class:`ONNXRuntime`; anything
    else is loaded as TorchScript.

    Raises:
        ResourceIOError: If the model file does not exist.
    """
    if not model_path.is_file():
        raise ResourceIOError("Model file not found", resource=str(model_path))
    if model_path.suffix.lower() == ".onnx":
        return ONNXRuntime(model_path, settings)
    return TorchScriptRuntime(model_path, settings)
