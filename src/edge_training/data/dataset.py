"""In-memory dataset materialization.

Every labelled image is decoded, preprocessed and label-encoded exactly once
per invocation and the resulting samples are held in memory for the whole
run.  Memory use is roughly ``N * (feature_width + num_classes) * 4`` bytes
plus per-object overhead; :func:`check_memory_ceiling` warns when that
estimate exceeds half of the available RAM.  Datasets larger than that need
a lazy per-epoch decoder with the same shuffle-then-batch contract.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import numpy as np
import psutil  # type: ignore[import-untyped]
from loguru import logger
from tqdm import tqdm

from edge_training.data.labels import LabelEntry
from edge_training.data.preprocess import Preprocessor, decode_image, process_image
from edge_training.errors import ConfigurationError, EdgeTrainingError
from edge_training.types import FloatArray, Sample

# Per-sample overhead of the NamedTuple and two ndarray headers
_SAMPLE_OVERHEAD_BYTES = 256


def encode_label(class_id: int, num_classes: int, resource: str = "") -> FloatArray:
    """One-hot encode ``class_id`` into a float32 vector of length num_classes.

    Raises:
        ConfigurationError: If ``class_id`` is outside ``[0, num_classes)``.
    """
    if not 0 <= class_id < num_classes:
        raise ConfigurationError(
            f"Class id {class_id} out of range for num_classes={num_classes}",
            resource=resource,
        )
    label = np.zeros(num_classes, dtype=np.float32)
    label[class_id] = 1.0
    return label


def validate_class_ids(
    entries: Sequence[LabelEntry], num_classes: int, label_file: Path
) -> None:
    """Reject out-of-range class ids before any image or model is loaded."""
    for entry in entries:
        if not 0 <= entry.class_id < num_classes:
            raise ConfigurationError(
                f"Class id {entry.class_id} out of range for "
                f"num_classes={num_classes}",
                resource=f"{label_file}:{entry.line}",
            )


def estimate_dataset_bytes(
    num_samples: int, feature_width: int, num_classes: int
) -> int:
    """Approximate resident size of a materialized dataset."""
    per_sample = (feature_width + num_classes) * 4 + _SAMPLE_OVERHEAD_BYTES
    return num_samples * per_sample


def check_memory_ceiling(
    num_samples: int, feature_width: int, num_classes: int
) -> bool:
    """Log the estimated dataset size against available memory.

    Returns:
        True if the estimate fits within half of the available RAM.
    """
    estimated = estimate_dataset_bytes(num_samples, feature_width, num_classes)
    available = psutil.virtual_memory().available
    threshold = available * 0.5
    logger.info(
        f"Dataset memory: est. {estimated / 1e6:.1f}MB for {num_samples} samples, "
        f"available RAM={available / 1e6:.1f}MB"
    )
    if estimated >= threshold:
        logger.warning(
            f"Materialized dataset ({estimated / 1e6:.1f}MB) exceeds 50% of "
            f"available RAM ({threshold / 1e6:.1f}MB); the run may be killed"
        )
        return False
    return True


def materialize_dataset(
    entries: Sequence[LabelEntry],
    image_root: Path,
    preprocessor: Preprocessor,
    *,
    channels: int,
    height: int,
    width: int,
    num_classes: int,
    label_file: Path | None = None,
) -> list[Sample]:
    """Build the full sample list, in label-file order.

    Args:
        entries: Parsed label index.
        image_root: Directory the entry paths are relative to.
        preprocessor: Identity or bottleneck feature extraction stage.
        channels: Image channel count (1 or 3).
        height: Target image height.
        width: Target image width.
        num_classes: Length of the one-hot label vectors.
        label_file: Label file path, only used to name offending lines.

    Raises:
        EdgeTrainingError: On the first entry that cannot be materialized.
            The error resource names the offending file.
    """
    feature_width = preprocessor.output_size or channels * height * width
    check_memory_ceiling(len(entries), feature_width, num_classes)

    samples: list[Sample] = []
    for entry in tqdm(entries, desc="Materialize", unit="img", leave=False):
        image_path = image_root / entry.image
        label = encode_label(
            entry.class_id,
            num_classes,
            resource=f"{label_file}:{entry.line}" if label_file else str(image_path),
        )
        image = decode_image(image_path, channels)
        try:
            features = preprocessor(process_image(image, height, width))
        except EdgeTrainingError as e:
            logger.error(f"Preprocessing failed for {image_path}: {e}")
            raise
        samples.append(Sample(features=features, label=label))

    logger.info(
        f"Materialized {len(samples)} samples "
        f"(preprocessor={preprocessor.kind}, feature_width={feature_width})"
    )
    return samples
