"""Result summary schemas."""

from edge_training.schemas.result import ErrorInfo, TestResult, TrainResult

__all__ = [
    "ErrorInfo",
    "TestResult",
    "TrainResult",
]
