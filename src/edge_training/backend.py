"""Train/test entry points invoked by the federated-learning client.

Both invocations follow the same pipeline::

    config -> label index -> model runtime -> materialized samples -> loop

Configuration errors are raised before any file or runtime is touched.  A
failed training run is reported as a ``TrainResult`` with ``success=False``
so the client can forward it to the aggregator; evaluation failures
propagate to the caller.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import numpy as np
from loguru import logger

from edge_training.config import (
    DataConfig,
    RuntimeSettings,
    TestingConfig,
    TrainingConfig,
    parse_config,
)
from edge_training.data.dataset import materialize_dataset, validate_class_ids
from edge_training.data.labels import load_label_index
from edge_training.data.preprocess import build_preprocessor
from edge_training.engine.eval_loop import run_evaluation
from edge_training.engine.train_loop import compute_utility, run_training
from edge_training.errors import (
    ConfigurationError,
    EdgeTrainingError,
    ResourceIOError,
)
from edge_training.runtime.base import ModelRuntime
from edge_training.runtime.factory import open_runtime
from edge_training.schemas.result import TestResult, TrainResult
from edge_training.types import Sample

RuntimeFactory = Callable[[Path, RuntimeSettings], ModelRuntime]

CHECKPOINT_NAME = "model.ckpt"


class LocalBackend:
    """On-device backend running train and test invocations to completion.

    Each call loads its own dataset, runtime and loss accumulator; nothing is
    shared between calls.  Callers must serialize calls that use the same
    model file.

    Args:
        runtime_factory: Opens a model file as a :class:`ModelRuntime`.
        seed: Seed for the per-epoch shuffle.  ``None`` draws fresh entropy
            for every training call.
    """

    def __init__(
        self,
        runtime_factory: RuntimeFactory = open_runtime,
        seed: int | None = None,
    ) -> None:
        self.runtime_factory = runtime_factory
        self.seed = seed

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    def _load_samples(
        self,
        directory: Path,
        model: str,
        data_conf: DataConfig,
        settings: RuntimeSettings,
    ) -> tuple[ModelRuntime, list[Sample]]:
        label_file = directory / data_conf.label
        entries = load_label_index(label_file)
        validate_class_ids(entries, settings.num_classes, label_file)

        runtime = self.runtime_factory(directory / model, settings)
        preprocessor = build_preprocessor(runtime, settings.bottleneck_size)
        samples = materialize_dataset(
            entries,
            directory / data_conf.data,
            preprocessor,
            channels=settings.channel,
            height=settings.height,
            width=settings.width,
            num_classes=settings.num_classes,
            label_file=label_file,
        )
        return runtime, samples

    # ------------------------------------------------------------------
    # Invocations
    # ------------------------------------------------------------------

    def train(
        self,
        directory: str | Path,
        model: str,
        data_conf: Mapping[str, Any] | DataConfig,
        training_conf: Mapping[str, Any] | TrainingConfig,
    ) -> TrainResult:
        """Train ``model`` on the split described by ``data_conf``.

        Raises:
            ConfigurationError: If either config is invalid.
        """
        data_cfg = parse_config(DataConfig, data_conf, "data")
        cfg = parse_config(TrainingConfig, training_conf, "training")
        directory = Path(directory)
        start = time.perf_counter()

        logger.info(
            f"[{cfg.client_id}] Training {model}: epochs={cfg.epoch}, "
            f"batch_size={cfg.batch_size}, lr={cfg.learning_rate}, "
            f"bottleneck={cfg.bottleneck_size}"
        )
        try:
            runtime, samples = self._load_samples(
                directory, model, data_cfg, RuntimeSettings.from_training(cfg)
            )
            outcome = run_training(
                runtime,
                samples,
                epochs=cfg.epoch,
                batch_size=cfg.batch_size,
                loss_decay=cfg.loss_decay,
                rng=np.random.default_rng(self.seed),
            )
            checkpoint_path = (directory / CHECKPOINT_NAME).absolute()
            runtime.save_checkpoint(checkpoint_path)
            update_weight = _read_checkpoint(checkpoint_path)
        except ConfigurationError:
            raise
        except EdgeTrainingError as e:
            wall_duration = time.perf_counter() - start
            logger.error(
                f"[{cfg.client_id}] Training failed after {wall_duration:.2f}s: {e}"
            )
            return TrainResult(
                client_id=cfg.client_id,
                success=False,
                wall_duration=wall_duration,
                error=e.to_info(),
            )

        wall_duration = time.perf_counter() - start
        result = TrainResult(
            client_id=cfg.client_id,
            moving_loss=outcome.moving_loss,
            trained_size=outcome.trained_size,
            success=True,
            update_weight=update_weight,
            utility=compute_utility(outcome.last_loss, len(samples)),
            wall_duration=wall_duration,
        )
        logger.info(
            f"[{cfg.client_id}] Training done in {wall_duration:.2f}s: "
            f"moving_loss={result.moving_loss:.6f}, utility={result.utility:.4f}, "
            f"checkpoint={len(update_weight)} bytes"
        )
        return result

    def test(
        self,
        directory: str | Path,
        model: str,
        data_conf: Mapping[str, Any] | DataConfig,
        testing_conf: Mapping[str, Any] | TestingConfig,
    ) -> TestResult:
        """Evaluate ``model`` on the split described by ``data_conf``.

        Raises:
            EdgeTrainingError: On any configuration, I/O, data or runtime
                failure; no partial result is returned.
        """
        data_cfg = parse_config(DataConfig, data_conf, "data")
        cfg = parse_config(TestingConfig, testing_conf, "testing")
        directory = Path(directory)

        logger.info(f"Testing {model}: test_bsz={cfg.test_bsz}")
        runtime, samples = self._load_samples(
            directory, model, data_cfg, RuntimeSettings.from_testing(cfg)
        )
        result = run_evaluation(runtime, samples, batch_size=cfg.test_bsz)
        logger.info(
            f"Testing done: top_1={result.top_1:.4f}, top_5={result.top_5:.4f}, "
            f"test_loss={result.test_loss:.6f}, test_len={result.test_len}"
        )
        return result


def _read_checkpoint(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise ResourceIOError(f"Cannot read checkpoint: {e}", resource=str(path)) from e
