"""Model runtimes exposing the train/test/save/load signatures."""

from edge_training.runtime.base import ModelRuntime
from edge_training.runtime.factory import open_runtime
from edge_training.runtime.onnx_runtime import ONNXRuntime
from edge_training.runtime.torch_runtime import TorchScriptRuntime

__all__ = [
    "ModelRuntime",
    "ONNXRuntime",
    "TorchScriptRuntime",
    "open_runtime",
]
