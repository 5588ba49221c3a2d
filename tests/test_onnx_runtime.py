"""Tests for the evaluation-only ONNX runtime."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from edge_training.config import RuntimeSettings
from edge_training.errors import ConfigurationError, RuntimeInvocationError
from edge_training.runtime import ONNXRuntime, open_runtime
from edge_training.runtime.onnx_runtime import _log_softmax

SESSION = "edge_training.runtime.onnx_runtime.ort.InferenceSession"


def _mock_session(logits: np.ndarray) -> MagicMock:
    session = MagicMock()
    mock_input = MagicMock()
    mock_input.name = "pixels"
    session.get_inputs.return_value = [mock_input]
    session.run.return_value = [logits]
    return session


def _one_hot(class_ids: list[int], num_classes: int = 3) -> np.ndarray:
    label = np.zeros((len(class_ids), num_classes), dtype=np.float32)
    label[np.arange(len(class_ids)), class_ids] = 1.0
    return label


class TestLogSoftmax:
    def test_exponentiates_to_one(self) -> None:
        out = _log_softmax(np.array([[1.0, 2.0, 3.0], [0.0, 0.0, 0.0]]))
        np.testing.assert_allclose(np.exp(out).sum(axis=1), [1.0, 1.0], rtol=1e-6)

    def test_stable_for_large_logits(self) -> None:
        out = _log_softmax(np.array([[1000.0, 0.0]]))
        assert np.isfinite(out).all()


class TestONNXRuntime:
    @patch(SESSION)
    def test_test_step_counts(
        self, mock_session_cls: MagicMock, tmp_path: Path, tiny_settings
    ) -> None:
        # Row 0 correct at top-1, row 1 correct only within top-3, row 2 correct.
        logits = np.array(
            [[3.0, 1.0, 0.0], [2.0, 1.0, 0.5], [0.0, 0.1, 4.0]], dtype=np.float32
        )
        session = _mock_session(logits)
        mock_session_cls.return_value = session
        model_path = tmp_path / "model.onnx"
        model_path.touch()

        runtime = ONNXRuntime(model_path, tiny_settings)
        data = np.zeros((3, 3 * 8 * 8), dtype=np.float32)
        out = runtime.test_step(data, _one_hot([0, 2, 2]))

        assert out.top1 == 2
        assert out.top5 == 3
        assert out.loss > 0.0
        fed = session.run.call_args.args[1]["pixels"]
        assert fed.shape == (3, 3, 8, 8)
        assert fed.dtype == np.float32

    @patch(SESSION)
    def test_loss_is_mean_cross_entropy(
        self, mock_session_cls: MagicMock, tmp_path: Path, tiny_settings
    ) -> None:
        logits = np.zeros((2, 3), dtype=np.float32)
        mock_session_cls.return_value = _mock_session(logits)
        model_path = tmp_path / "model.onnx"
        model_path.touch()

        runtime = ONNXRuntime(model_path, tiny_settings)
        out = runtime.test_step(
            np.zeros((2, 192), dtype=np.float32), _one_hot([0, 1])
        )
        assert out.loss == pytest.approx(np.log(3.0), rel=1e-5)

    @patch(SESSION)
    def test_thread_count_from_settings(
        self, mock_session_cls: MagicMock, tmp_path: Path, tiny_settings
    ) -> None:
        mock_session_cls.return_value = _mock_session(np.zeros((1, 3)))
        model_path = tmp_path / "model.onnx"
        model_path.touch()
        settings = tiny_settings.model_copy(update={"num_workers": 3})

        ONNXRuntime(model_path, settings)
        options = mock_session_cls.call_args.kwargs["sess_options"]
        assert options.intra_op_num_threads == 3

    @patch(SESSION)
    def test_logit_shape_mismatch(
        self, mock_session_cls: MagicMock, tmp_path: Path, tiny_settings
    ) -> None:
        mock_session_cls.return_value = _mock_session(np.zeros((2, 5)))
        model_path = tmp_path / "model.onnx"
        model_path.touch()

        runtime = ONNXRuntime(model_path, tiny_settings)
        with pytest.raises(RuntimeInvocationError):
            runtime.test_step(np.zeros((2, 192), dtype=np.float32), _one_hot([0, 1]))

    @pytest.mark.parametrize(
        "method,args",
        [
            ("train_step", (np.zeros((1, 192)), np.zeros((1, 3)))),
            ("save_checkpoint", (Path("model.ckpt"),)),
            ("extract_bottleneck", (np.zeros(192),)),
        ],
    )
    @patch(SESSION)
    def test_weight_signatures_unsupported(
        self,
        mock_session_cls: MagicMock,
        method: str,
        args: tuple,
        tmp_path: Path,
        tiny_settings,
    ) -> None:
        mock_session_cls.return_value = _mock_session(np.zeros((1, 3)))
        model_path = tmp_path / "model.onnx"
        model_path.touch()

        runtime = ONNXRuntime(model_path, tiny_settings)
        with pytest.raises(RuntimeInvocationError):
            getattr(runtime, method)(*args)

    def test_bottleneck_mode_rejected(
        self, tmp_path: Path, tiny_settings: RuntimeSettings
    ) -> None:
        settings = tiny_settings.model_copy(update={"bottleneck_size": 6})
        with pytest.raises(ConfigurationError):
            ONNXRuntime(tmp_path / "model.onnx", settings)

    def test_unloadable_model(
        self, tmp_path: Path, tiny_settings: RuntimeSettings
    ) -> None:
        model_path = tmp_path / "model.onnx"
        model_path.write_bytes(b"not a graph")
        with pytest.raises(RuntimeInvocationError):
            ONNXRuntime(model_path, tiny_settings)


class TestOpenRuntimeSuffix:
    @patch(SESSION)
    def test_onnx_suffix_selects_onnx_runtime(
        self, mock_session_cls: MagicMock, tmp_path: Path, tiny_settings
    ) -> None:
        mock_session_cls.return_value = _mock_session(np.zeros((1, 3)))
        model_path = tmp_path / "model.ONNX"
        model_path.touch()
        assert isinstance(open_runtime(model_path, tiny_settings), ONNXRuntime)
