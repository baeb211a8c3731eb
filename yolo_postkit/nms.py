from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .types import Box, Candidate


@dataclass
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: Optional[int] = None


def iou(box_a: Box, box_b: Box) -> float:
    """
    Intersection over union of two xyxy boxes.

    Returns 0.0 when the union is empty (both boxes degenerate).
    """

    ax1, ay1, ax2, ay2 = box_a
    bx1, by1, bx2, by2 = box_b
    inter = max(0.0, min(ax2, bx2) - max(ax1, bx1)) * max(0.0, min(ay2, by2) - max(ay1, by1))
    area_a = (ax2 - ax1) * (ay2 - ay1)
    area_b = (bx2 - bx1) * (by2 - by1)
    union = area_a + area_b - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Ties in score keep input order (stable sort), so the result is deterministic.
    A box is dropped when its IoU with an already kept box exceeds the threshold;
    zero-union pairs count as IoU 0 and never suppress each other.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float64).reshape(-1)
    if boxes.shape[0] == 0:
        return np.empty((0,), dtype=np.int64)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = (x2 - x1) * (y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(i)

        xx1 = np.maximum(x1[i], x1[order[1:]])
        yy1 = np.maximum(y1[i], y1[order[1:]])
        xx2 = np.minimum(x2[i], x2[order[1:]])
        yy2 = np.minimum(y2[i], y2[order[1:]])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[order[1:]] - inter
        with np.errstate(divide="ignore", invalid="ignore"):
            overlap = np.where(union > 0, inter / np.where(union > 0, union, 1.0), 0.0)

        inds = np.where(~(overlap > cfg.iou_threshold))[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)


def suppress(
    candidates: Sequence[Candidate],
    iou_threshold: float,
    max_detections: Optional[int] = None,
) -> List[Candidate]:
    """
    Class-agnostic NMS over candidates; survivors come back in descending confidence.

    Callers that need class-aware suppression should partition by class first
    (see `suppress_per_class`).
    """

    if not candidates:
        return []
    boxes = np.array([c.box for c in candidates], dtype=np.float64)
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    keep = nms(boxes, scores, NMSConfig(iou_threshold=iou_threshold, max_detections=max_detections))
    return [candidates[int(i)] for i in keep]


def suppress_per_class(
    candidates: Sequence[Candidate],
    iou_threshold: float,
    max_detections: Optional[int] = None,
) -> List[Candidate]:
    """Run `suppress` separately per class_id, then merge by score (stable)."""
    if not candidates:
        return []
    boxes = np.array([c.box for c in candidates], dtype=np.float64)
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    cfg = NMSConfig(iou_threshold=iou_threshold)

    by_class: Dict[int, List[int]] = {}
    for idx, c in enumerate(candidates):
        by_class.setdefault(c.class_id, []).append(idx)

    kept: List[int] = []
    for members in by_class.values():
        idx = np.array(members, dtype=np.int64)
        keep_local = nms(boxes[idx], scores[idx], cfg)
        kept.extend(int(i) for i in idx[keep_local])

    kept.sort(key=lambda i: (-candidates[i].score, i))
    if max_detections is not None:
        kept = kept[:max_detections]
    return [candidates[i] for i in kept]
