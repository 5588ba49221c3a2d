"""Two-stage image preprocessing: raw image -> pixel tensor -> optional bottleneck.

Stage one is fixed and must stay in this order:

1. Centered square crop to ``min(height, width)``.
2. Bilinear resize to the target size (no antialiasing, as mobile resize ops).
3. Normalize ``(raw - 0) / 255``.

Stage two is a :class:`Preprocessor` selected once per run from the
bottleneck size: ``identity`` passes the pixel tensor through, ``bottleneck``
replaces it with the frozen-backbone feature produced by the runtime.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import numpy as np
import torch
from PIL import Image
from torchvision.transforms import InterpolationMode, v2

from edge_training.errors import DataError, ResourceIOError, RuntimeInvocationError
from edge_training.types import FloatArray

if TYPE_CHECKING:
    from edge_training.runtime.base import ModelRuntime

# Normalization contract of the runtime: output = (raw - MEAN) / SCALE
NORM_MEAN = 0.0
NORM_SCALE = 255.0

_PIL_MODES = {1: "L", 3: "RGB"}


def decode_image(path: Path, channels: int = 3) -> Image.Image:
    """Decode an image file into a PIL image with ``channels`` bands.

    Raises:
        ResourceIOError: If the file does not exist or cannot be opened.
        DataError: If the file is readable but not a fully decodable image,
            including truncated files.
    """
    mode = _PIL_MODES.get(channels)
    if mode is None:
        raise DataError(f"Unsupported channel count: {channels}", resource=str(path))
    try:
        fp = open(path, "rb")
    except OSError as e:
        raise ResourceIOError(f"Cannot read image: {e}", resource=str(path)) from e

    # From here on the bytes are readable; any failure is in the content
    with fp:
        try:
            with Image.open(fp) as img:
                img.load()
                return img.convert(mode)
        except (OSError, SyntaxError, ValueError) as e:
            raise DataError(f"Cannot decode image: {e}", resource=str(path)) from e


def build_pixel_transform(
    crop_size: int, target_height: int, target_width: int, channels: int
) -> v2.Compose:
    """Crop, resize and normalize transform for one source image size.

    The image is converted to a uint8 tensor first: PIL resizing always
    antialiases, tensor resizing honours ``antialias=False``.
    """
    return v2.Compose([
        v2.ToImage(),
        v2.CenterCrop(crop_size),
        v2.Resize(
            (target_height, target_width),
            interpolation=InterpolationMode.BILINEAR,
            antialias=False,
        ),
        v2.ToDtype(torch.float32, scale=False),
        v2.Normalize(mean=[NORM_MEAN] * channels, std=[NORM_SCALE] * channels),
    ])


def process_image(
    image: Image.Image, target_height: int, target_width: int
) -> FloatArray:
    """Convert a decoded image into a flat channel-first float32 vector.

    Returns:
        Array of length ``channels * target_height * target_width``.
    """
    channels = len(image.getbands())
    crop_size = min(image.height, image.width)
    transform = build_pixel_transform(crop_size, target_height, target_width, channels)
    tensor: torch.Tensor = transform(image)
    return tensor.reshape(-1).numpy().astype(np.float32, copy=False)


@dataclass(frozen=True)
class Preprocessor:
    """Feature extraction applied to every pixel tensor.

    kind: ``"identity"`` or ``"bottleneck"``.
    output_size: Length of the produced feature vector (0 means unchanged).
    """

    kind: Literal["identity", "bottleneck"]
    fn: Callable[[FloatArray], FloatArray]
    output_size: int = 0

    def __call__(self, tensor: FloatArray) -> FloatArray:
        return self.fn(tensor)


def _identity(tensor: FloatArray) -> FloatArray:
    return tensor


def build_preprocessor(runtime: ModelRuntime, bottleneck_size: int) -> Preprocessor:
    """Select the feature extraction stage from the bottleneck size.

    ``bottleneck_size == 0`` trains the whole model on pixels.  Otherwise each
    image is passed once through the runtime's ``load`` signature and only the
    resulting feature is kept, so the backbone is not recomputed every epoch.
    """
    if bottleneck_size == 0:
        return Preprocessor(kind="identity", fn=_identity)

    def _extract(tensor: FloatArray) -> FloatArray:
        feature = np.asarray(runtime.extract_bottleneck(tensor), dtype=np.float32)
        feature = feature.reshape(-1)
        if feature.shape[0] != bottleneck_size:
            raise RuntimeInvocationError(
                f"Bottleneck has {feature.shape[0]} values, expected {bottleneck_size}",
                resource="load",
            )
        return feature

    return Preprocessor(kind="bottleneck", fn=_extract, output_size=bottleneck_size)
