"""Tests for ResultWriter JSON output."""

from __future__ import annotations

from pathlib import Path

import orjson

from edge_training.io.results import ResultWriter
from edge_training.schemas.result import ErrorInfo, TrainResult
from edge_training.schemas.result import TestResult as EvalResult


class TestResultWriter:
    def test_creates_output_dir(self, tmp_path: Path) -> None:
        out_dir = tmp_path / "a" / "b"
        ResultWriter(out_dir)
        assert out_dir.is_dir()

    def test_train_sidecar(self, tmp_path: Path) -> None:
        writer = ResultWriter(tmp_path)
        result = TrainResult(
            client_id="3",
            moving_loss=0.42,
            trained_size=100,
            update_weight=b"\x00\xffweights",
            utility=12.5,
            wall_duration=1.25,
        )
        path = writer.write_train(result)

        assert path == tmp_path / "train_result.json"
        data = orjson.loads(path.read_bytes())
        assert data["client_id"] == "3"
        assert data["moving_loss"] == 0.42
        assert data["update_weight"] == {"file": "update_weight.bin", "size": 9}
        assert data["error"] is None
        assert (tmp_path / "update_weight.bin").read_bytes() == b"\x00\xffweights"

    def test_failed_train_has_error(self, tmp_path: Path) -> None:
        writer = ResultWriter(tmp_path)
        result = TrainResult(
            client_id="3",
            success=False,
            error=ErrorInfo(kind="runtime", resource="train", message="boom"),
        )
        data = orjson.loads(writer.write_train(result).read_bytes())

        assert data["success"] is False
        assert data["update_weight"] is None
        assert data["error"] == {
            "kind": "runtime",
            "resource": "train",
            "message": "boom",
        }
        assert not (tmp_path / "update_weight.bin").exists()

    def test_test_result(self, tmp_path: Path) -> None:
        writer = ResultWriter(tmp_path)
        result = EvalResult(top_1=0.7, top_5=1.0, test_loss=1.75, test_len=10)
        data = orjson.loads(writer.write_test(result).read_bytes())
        assert data == {"top_1": 0.7, "top_5": 1.0, "test_loss": 1.75, "test_len": 10}

    def test_output_is_indented(self, tmp_path: Path) -> None:
        writer = ResultWriter(tmp_path)
        path = writer.write_test(
            EvalResult(top_1=0.0, top_5=0.0, test_loss=0.0, test_len=0)
        )
        assert b"\n  " in path.read_bytes()
