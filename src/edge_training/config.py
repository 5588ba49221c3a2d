"""Pydantic frozen configuration models for edge_training.

Configs arrive as JSON objects from the aggregating server.  All fields are
validated at construction time; a validation failure is re-raised as
:class:`ConfigurationError` before any model runtime is touched.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, TypeVar

from pydantic import BaseModel, Field, ValidationError

from edge_training.errors import ConfigurationError

_ConfigT = TypeVar("_ConfigT", bound=BaseModel)


class DataConfig(BaseModel, frozen=True):
    """Location of a split relative to the invocation directory.

    data: Image subfolder.
    label: Label file, one ``"<relative-path> <class-id>"`` per line.
    """

    data: str
    label: str


class _ImageShapeConfig(BaseModel, frozen=True):
    num_classes: int = Field(gt=0)
    num_workers: int = Field(ge=1)
    channel: Literal[1, 3]
    height: int = Field(gt=0)
    width: int = Field(gt=0)
    bottleneck_size: int = Field(ge=0)

    @property
    def feature_width(self) -> int:
        """Length of one Sample feature vector."""
        if self.bottleneck_size > 0:
            return self.bottleneck_size
        return self.channel * self.height * self.width


class TrainingConfig(_ImageShapeConfig):
    """Hyperparameters for one training invocation."""

    client_id: str
    epoch: int = Field(ge=0)
    batch_size: int = Field(gt=0)
    learning_rate: float = Field(gt=0.0)
    loss_decay: float = Field(ge=0.0, le=1.0)
    momentum: float = Field(ge=0.0)
    weight_decay: float = Field(ge=0.0)


class TestingConfig(_ImageShapeConfig):
    """Parameters for one evaluation invocation."""

    test_bsz: int = Field(gt=0)


class RuntimeSettings(BaseModel, frozen=True):
    """Everything a model runtime needs to open a model file.

    Optimizer fields are ignored by evaluation-only runtimes.
    """

    num_workers: int = 1
    num_classes: int
    channel: int
    height: int
    width: int
    bottleneck_size: int = 0
    learning_rate: float = 0.0
    momentum: float = 0.0
    weight_decay: float = 0.0

    @classmethod
    def from_training(cls, config: TrainingConfig) -> RuntimeSettings:
        return cls(
            num_workers=config.num_workers,
            num_classes=config.num_classes,
            channel=config.channel,
            height=config.height,
            width=config.width,
            bottleneck_size=config.bottleneck_size,
            learning_rate=config.learning_rate,
            momentum=config.momentum,
            weight_decay=config.weight_decay,
        )

    @classmethod
    def from_testing(cls, config: TestingConfig) -> RuntimeSettings:
        return cls(
            num_workers=config.num_workers,
            num_classes=config.num_classes,
            channel=config.channel,
            height=config.height,
            width=config.width,
            bottleneck_size=config.bottleneck_size,
        )


def parse_config(
    model: type[_ConfigT], raw: Mapping[str, Any] | _ConfigT, name: str
) -> _ConfigT:
    """Validate ``raw`` into ``model``, mapping failures to ConfigurationError.

    Args:
        model: Target pydantic model class.
        raw: Mapping decoded from JSON, or an already-built config.
        name: Config name used as the error resource (e.g. ``"training"``).
    """
    if isinstance(raw, model):
        return raw
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            f"Invalid {name} config: expected a mapping, got {type(raw).__name__}",
            resource=name,
        )
    try:
        return model.model_validate(dict(raw))
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "<root>"
            for err in e.errors()
        )
        raise ConfigurationError(
            f"Invalid {name} config: {e.error_count()} error(s) in {fields}",
            resource=name,
        ) from e
