"""Result summaries returned by train and test invocations."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorInfo(BaseModel, frozen=True):
    """Structured description of a failed invocation."""

    kind: str
    resource: str
    message: str


class TrainResult(BaseModel, frozen=True):
    """Outcome of one training invocation.

    ``update_weight`` holds the raw bytes of the checkpoint written by the
    runtime's ``save`` signature.  On failure ``success`` is False, the
    numeric fields keep whatever was known when the run aborted and
    ``error`` names the failure.
    """

    client_id: str
    moving_loss: float = 0.0
    trained_size: int = 0
    success: bool = True
    update_weight: bytes = b""
    utility: float = 0.0
    wall_duration: float = 0.0
    error: ErrorInfo | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire dict with the keys the aggregator expects."""
        return {
            "client_id": self.client_id,
            "moving_loss": self.moving_loss,
            "trained_size": self.trained_size,
            "success": self.success,
            "update_weight": self.update_weight,
            "utility": self.utility,
            "wall_duration": self.wall_duration,
        }


class TestResult(BaseModel, frozen=True):
    """Outcome of one evaluation invocation.

    ``test_loss`` is the raw sum of per-batch losses, not an average.
    """

    top_1: float
    top_5: float
    test_loss: float
    test_len: int

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump()
