from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Tuple

from .errors import InvalidConfigurationError
from .types import Box, Candidate


def _check_size(size: Tuple[float, float], name: str) -> None:
    if len(size) != 2 or size[0] <= 0 or size[1] <= 0:
        raise InvalidConfigurationError(f"{name} must be a positive (width, height), got {size!r}")


def _clamp(v: float, hi: float) -> float:
    return min(max(v, 0.0), hi)


def rescale_box(
    box: Box,
    src_size: Tuple[float, float],
    dst_size: Tuple[float, float],
) -> Box:
    """
    Map an xyxy box from network-input space to original-image space.

    Each axis is scaled independently (x * W / src_w, y * H / src_h), clamped into
    [0, W] / [0, H], and the corners are reordered so x1 <= x2 and y1 <= y2.
    """

    _check_size(src_size, "src_size")
    _check_size(dst_size, "dst_size")
    src_w, src_h = src_size
    dst_w, dst_h = dst_size
    sx = dst_w / src_w
    sy = dst_h / src_h

    x1, y1, x2, y2 = box
    x1, x2 = _clamp(x1 * sx, dst_w), _clamp(x2 * sx, dst_w)
    y1, y2 = _clamp(y1 * sy, dst_h), _clamp(y2 * sy, dst_h)
    if x1 > x2:
        x1, x2 = x2, x1
    if y1 > y2:
        y1, y2 = y2, y1
    return float(x1), float(y1), float(x2), float(y2)


def rescale_candidates(
    candidates: Iterable[Candidate],
    src_size: Tuple[float, float],
    dst_size: Tuple[float, float],
) -> List[Candidate]:
    """Rescale every candidate's box; returns new records, inputs are left untouched."""
    return [replace(c, box=rescale_box(c.box, src_size, dst_size)) for c in candidates]


def box_area(box: Box) -> float:
    x1, y1, x2, y2 = box
    return max(0.0, x2 - x1) * max(0.0, y2 - y1)


def is_degenerate(box: Box) -> bool:
    """True for boxes with zero area (e.g. fully clamped to an image edge)."""
    return not box_area(box) > 0.0
