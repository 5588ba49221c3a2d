"""Result summary writer using orjson."""

from __future__ import annotations

from pathlib import Path

import orjson

from edge_training.schemas.result import TestResult, TrainResult


class ResultWriter:
    """Write train/test result summaries as JSON files inside ``output_dir``.

    Training checkpoints are binary, so ``update_weight`` is written to a
    sidecar ``update_weight.bin`` and the JSON records its file name and size.
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def write_train(self, result: TrainResult) -> Path:
        """Write ``train_result.json`` (+ checkpoint sidecar). Returns the JSON path."""
        dump = result.model_dump(exclude={"update_weight"})
        if result.update_weight:
            weight_path = self.output_dir / "update_weight.bin"
            weight_path.write_bytes(result.update_weight)
            dump["update_weight"] = {
                "file": weight_path.name,
                "size": len(result.update_weight),
            }
        else:
            dump["update_weight"] = None
        return self._write("train_result.json", dump)

    def write_test(self, result: TestResult) -> Path:
        """Write ``test_result.json``. Returns the output path."""
        return self._write("test_result.json", result.to_payload())

    def _write(self, name: str, dump: dict[str, object]) -> Path:
        out_path = self.output_dir / name
        out_path.write_bytes(orjson.dumps(dump, option=orjson.OPT_INDENT_2))
        return out_path
