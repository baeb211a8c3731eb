"""
Error kinds raised by the post-processing core.

All of them derive from `PostprocessError` so callers can catch the whole family,
and from the matching builtin so plain `except ValueError` handlers keep working.
"""

from __future__ import annotations


class PostprocessError(Exception):
    """Base class for every error raised by yolo_postkit."""


class ShapeMismatchError(PostprocessError, ValueError):
    """A buffer's length does not match its declared width/height/channel contract."""


class OutOfBoundsError(PostprocessError, IndexError):
    """
    A computed slot offset runs past the end of the output tensor.

    Raised per candidate slot; the decoder recovers by skipping the slot.
    """

    def __init__(self, offset: int, needed: int, length: int):
        super().__init__(f"Slot at offset {offset} needs {needed} fields but tensor length is {length}")
        self.offset = offset
        self.needed = needed
        self.length = length


class InvalidConfigurationError(PostprocessError, ValueError):
    """Thresholds, sizes, strides or anchors that cannot be decoded with."""
