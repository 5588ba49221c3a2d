"""Single-pass evaluation loop producing top-1/top-5 accuracy."""

from __future__ import annotations

import math
from collections.abc import Sequence

from loguru import logger

from edge_training.data.batching import build_batches
from edge_training.errors import RuntimeInvocationError
from edge_training.runtime.base import ModelRuntime
from edge_training.schemas.result import TestResult
from edge_training.types import Batch, Sample, TestStepOutput


def _check_output(output: TestStepOutput, batch: Batch, batch_idx: int) -> None:
    """Loss must be finite and correct counts must fit the batch row count."""
    if not math.isfinite(output.loss):
        raise RuntimeInvocationError(
            f"Non-finite loss {output.loss} at batch {batch_idx}", resource="test"
        )
    rows = batch.rows
    if not (0 <= output.top1 <= output.top5 <= rows):
        raise RuntimeInvocationError(
            f"Batch {batch_idx}: invalid counts top1={output.top1} "
            f"top5={output.top5} for {rows} rows",
            resource="test",
        )


def run_evaluation(
    runtime: ModelRuntime,
    samples: Sequence[Sample],
    *,
    batch_size: int,
) -> TestResult:
    """Evaluate ``samples`` in order and report accuracy.

    Accuracies divide by the true dataset size.  ``test_loss`` is the raw
    sum of per-batch losses, not their mean.
    """
    dataset_size = len(samples)
    batches = build_batches(samples, batch_size, shuffle=False)

    test_loss = 0.0
    correct_top1 = 0
    correct_top5 = 0
    sample_count = 0

    for batch_idx, batch in enumerate(batches):
        output = runtime.test_step(batch.data, batch.label)
        _check_output(output, batch, batch_idx)

        test_loss += float(output.loss)
        correct_top1 += output.top1
        correct_top5 += output.top5
        sample_count += batch.rows

        logger.info(
            f"[test][batch][{batch_idx}][loss][{test_loss:.6f}]"
            f"[top 1][{correct_top1}/{sample_count}="
            f"{correct_top1 / sample_count * 100:.2f}%]"
            f"[top 5][{correct_top5}/{sample_count}="
            f"{correct_top5 / sample_count * 100:.2f}%]"
        )

    assert sample_count == dataset_size, (
        f"Evaluated {sample_count} rows but dataset has {dataset_size}"
    )

    if dataset_size == 0:
        logger.warning("Evaluation dataset is empty; reporting zero accuracy")
        return TestResult(top_1=0.0, top_5=0.0, test_loss=0.0, test_len=0)

    return TestResult(
        top_1=correct_top1 / dataset_size,
        top_5=correct_top5 / dataset_size,
        test_loss=test_loss,
        test_len=dataset_size,
    )
