"""Data pipeline for edge_training."""

from edge_training.data.batching import build_batches, num_batches
from edge_training.data.dataset import encode_label, materialize_dataset
from edge_training.data.labels import LabelEntry, load_label_index
from edge_training.data.preprocess import (
    Preprocessor,
    build_preprocessor,
    decode_image,
    process_image,
)

__all__ = [
    "LabelEntry",
    "Preprocessor",
    "build_batches",
    "build_preprocessor",
    "decode_image",
    "encode_label",
    "load_label_index",
    "materialize_dataset",
    "num_batches",
    "process_image",
]
