"""Failure taxonomy for train/test invocations.

Every failure carries a ``kind`` and the ``resource`` it concerns (a file
path, ``path:line``, a config field or a runtime signature name) so that a
client can report it back to the aggregating server verbatim.
"""

from __future__ import annotations

from edge_training.schemas.result import ErrorInfo


class EdgeTrainingError(Exception):
    """Base class for all failures raised by edge_training."""

    kind: str = "unknown"

    def __init__(self, message: str, resource: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.resource = resource

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind, resource=self.resource, message=self.message)

    def __str__(self) -> str:
        if self.resource:
            return f"[{self.kind}] {self.message} ({self.resource})"
        return f"[{self.kind}] {self.message}"


class ConfigurationError(EdgeTrainingError, ValueError):
    """Missing or malformed configuration, including out-of-range class ids."""

    kind = "config"


class ResourceIOError(EdgeTrainingError, OSError):
    """Label, image, model or checkpoint file could not be read or written."""

    kind = "io"


class DataError(EdgeTrainingError, ValueError):
    """Malformed label line or undecodable image."""

    kind = "data"


class RuntimeInvocationError(EdgeTrainingError, RuntimeError):
    """A model runtime signature failed or returned malformed outputs."""

    kind = "runtime"
