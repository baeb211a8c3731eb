"""
Interleaved RGB pixel buffer <-> planar (channel-major) tensor.

Index arithmetic for an image of `width` x `height`:

    interleaved index:  (y * width + x) * 3 + c
    planar index:       c * height * width + y * width + x

so `tensor[c, y, x] = normalize_c(pixels[(y * width + x) * 3 + c])` and the inverse
simply swaps the two indices.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from .errors import InvalidConfigurationError, ShapeMismatchError

PixelBuffer = Union[bytes, bytearray, memoryview, np.ndarray, Sequence[int]]

NORMALIZATION_MODES = ("unit-scale", "standardize")

IMAGENET_MEAN = (0.485, 0.456, 0.406)
IMAGENET_STD = (0.229, 0.224, 0.225)


@dataclass(frozen=True)
class Normalization:
    """
    Per-channel affine transform applied to 8-bit samples.

    - unit-scale:  v / 255
    - standardize: (v / 255 - mean[c]) / std[c]
    """

    mode: str = "unit-scale"
    mean: Tuple[float, float, float] = IMAGENET_MEAN
    std: Tuple[float, float, float] = IMAGENET_STD

    def __post_init__(self) -> None:
        if self.mode not in NORMALIZATION_MODES:
            raise InvalidConfigurationError(
                f"normalization mode must be one of {NORMALIZATION_MODES}, got {self.mode!r}"
            )
        if len(self.mean) != 3 or len(self.std) != 3:
            raise InvalidConfigurationError("normalization mean/std must have 3 values (R, G, B)")
        if any(s <= 0 for s in self.std):
            raise InvalidConfigurationError("normalization std values must be > 0")

    def scale_shift(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return per-channel (scale, shift) so that out = v * scale + shift."""
        if self.mode == "unit-scale":
            return np.full(3, 1.0 / 255.0, dtype=np.float32), np.zeros(3, dtype=np.float32)
        mean = np.asarray(self.mean, dtype=np.float32)
        std = np.asarray(self.std, dtype=np.float32)
        return (1.0 / (255.0 * std)).astype(np.float32), (-mean / std).astype(np.float32)


UNIT_SCALE = Normalization()


def _as_samples(pixels: PixelBuffer) -> np.ndarray:
    if isinstance(pixels, (bytes, bytearray, memoryview)):
        return np.frombuffer(pixels, dtype=np.uint8)
    return np.asarray(pixels).reshape(-1)


def to_planar_tensor(
    pixels: PixelBuffer,
    width: int,
    height: int,
    normalization: Normalization = UNIT_SCALE,
) -> np.ndarray:
    """
    Convert an interleaved RGB buffer into a normalized (3, height, width) float32 tensor.

    Raises:
        ShapeMismatchError: if `len(pixels) != width * height * 3` or the size is not positive.
    """

    if width <= 0 or height <= 0:
        raise ShapeMismatchError(f"Image size must be positive, got {width}x{height}")
    samples = _as_samples(pixels)
    expected = width * height * 3
    if samples.size != expected:
        raise ShapeMismatchError(
            f"Pixel buffer length {samples.size} does not match {width}x{height}x3 = {expected}"
        )

    scale, shift = normalization.scale_shift()
    hwc = samples.reshape(height, width, 3).astype(np.float32)
    hwc = hwc * scale + shift
    return np.ascontiguousarray(np.transpose(hwc, (2, 0, 1)), dtype=np.float32)


def to_interleaved(tensor: np.ndarray) -> np.ndarray:
    """Inverse index mapping of `to_planar_tensor`: (3, H, W) -> flat (H * W * 3,)."""
    t = np.asarray(tensor)
    if t.ndim != 3 or t.shape[0] != 3:
        raise ShapeMismatchError(f"Expected planar tensor shape (3, H, W), got {t.shape}")
    return np.ascontiguousarray(np.transpose(t, (1, 2, 0))).reshape(-1)


def to_input_blob(tensor: np.ndarray) -> np.ndarray:
    """Add the batch axis expected by inference engines: (3, H, W) -> (1, 3, H, W)."""
    t = np.asarray(tensor)
    if t.ndim != 3:
        raise ShapeMismatchError(f"Expected planar tensor shape (3, H, W), got {t.shape}")
    return t[None, ...]
