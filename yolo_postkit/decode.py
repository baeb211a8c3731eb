"""
Raw YOLO output tensor -> candidate boxes in network-input coordinates.

Two layouts are supported and the caller picks one through `DecoderConfig.layout`;
nothing here guesses the layout from the tensor shape.

- dense:   (N, 5 + C) rows of [cx, cy, w, h, obj, cls_0 .. cls_{C-1}], boxes already
           in input pixels.
- strided: concatenated per-level grids of raw head outputs, decoded with
           x = (v(tx) * 2 - 0.5 + col) * stride and w = exp(tw) * anchor_w.

Scoring is shared: obj = sigmoid(obj_logit), the best class is argmax of
sigmoid(cls_j), and score = obj * best. A slot is dropped as soon as either obj
or score falls below `conf_threshold`.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Tuple

import numpy as np

from .config import DecoderConfig
from .errors import OutOfBoundsError, ShapeMismatchError
from .types import Candidate

logger = logging.getLogger(__name__)


def sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return (1.0 / (1.0 + np.exp(-np.asarray(x, dtype=np.float32)))).astype(np.float32)


def _flatten(output: np.ndarray) -> np.ndarray:
    p = np.asarray(output)
    if p.dtype != np.float32:
        p = p.astype(np.float32)
    return p.reshape(-1)


def _read_slot(flat: np.ndarray, offset: int, n_fields: int) -> np.ndarray:
    if offset < 0 or offset + n_fields > flat.shape[0]:
        raise OutOfBoundsError(offset, n_fields, flat.shape[0])
    return flat[offset : offset + n_fields]


def _objectness(flat: np.ndarray, offsets: np.ndarray, cfg: DecoderConfig) -> np.ndarray:
    """Objectness per slot; slots whose objectness field is past the end get -1."""
    obj_idx = offsets + 4
    readable = obj_idx < flat.shape[0]
    raw = np.full(offsets.shape, -1.0, dtype=np.float32)
    raw[readable] = flat[obj_idx[readable]]
    if cfg.scores_are_logits:
        obj = sigmoid(raw)
        obj[~readable] = -1.0
        return obj
    return raw


def _class_score(row: np.ndarray, obj: float, cfg: DecoderConfig) -> Tuple[int, float]:
    cls = row[5 : 5 + cfg.num_classes]
    probs = sigmoid(cls) if cfg.scores_are_logits else cls
    # NaN classes never win the argmax.
    class_id = int(np.argmax(np.where(np.isnan(probs), -np.inf, probs)))
    return class_id, float(obj * probs[class_id])


def _candidate_slots(
    flat: np.ndarray, offsets: np.ndarray, cfg: DecoderConfig
) -> Iterator[Tuple[int, np.ndarray, int, float]]:
    """
    Yield (slot index, row, class_id, score) for slots that pass both thresholds.

    Slots whose fields do not fit in the tensor are skipped and logged.
    """

    obj = _objectness(flat, offsets, cfg)
    n_fields = cfg.num_fields
    skipped = int(np.count_nonzero(offsets + 4 >= flat.shape[0]))

    for slot in np.flatnonzero(obj >= cfg.conf_threshold):
        try:
            row = _read_slot(flat, int(offsets[slot]), n_fields)
        except OutOfBoundsError as exc:
            logger.debug("Skipping slot %d: %s", slot, exc)
            skipped += 1
            continue
        class_id, score = _class_score(row, float(obj[slot]), cfg)
        if not (np.isfinite(score) and score >= cfg.conf_threshold):
            continue
        yield int(slot), row, class_id, score

    if skipped:
        logger.debug("%d slot(s) out of bounds for tensor of length %d", skipped, flat.shape[0])


def decode_dense(output: np.ndarray, cfg: DecoderConfig) -> List[Candidate]:
    """
    Decode a dense (N, 5 + C) output whose boxes are already in input pixels.

    A trailing partial row (flat tensors whose length is not a multiple of
    5 + C) is skipped rather than treated as an error.
    """

    p = np.asarray(output)
    n_fields = cfg.num_fields
    if p.ndim >= 2 and p.shape[-1] != n_fields:
        raise ShapeMismatchError(f"Dense output last axis must be {n_fields} (5 + num_classes), got shape {p.shape}")
    flat = _flatten(p)

    offsets = np.arange(0, flat.shape[0], n_fields, dtype=np.int64)
    out: List[Candidate] = []
    for _, row, class_id, score in _candidate_slots(flat, offsets, cfg):
        cx, cy, w, h = (float(v) for v in row[:4])
        out.append(
            Candidate(
                class_id=class_id,
                score=score,
                box=(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2),
            )
        )
    return out


def level_offsets(cfg: DecoderConfig) -> List[Tuple[int, int, np.ndarray, np.ndarray, np.ndarray]]:
    """
    Slot offsets for every configured stride level.

    Returns one entry per level: (stride, grid size, slot offsets, cell index, anchor index),
    the three arrays aligned and in emission order.
    """

    n_fields = cfg.num_fields
    levels = []
    base = 0
    for stride, group in zip(cfg.strides, cfg.anchors):
        grid = cfg.input_size // stride
        cells = grid * grid
        n_anchors = len(group)
        if cfg.slot_order == "anchor-major":
            anchor_idx, cell_idx = np.divmod(np.arange(n_anchors * cells, dtype=np.int64), cells)
        else:
            cell_idx, anchor_idx = np.divmod(np.arange(n_anchors * cells, dtype=np.int64), n_anchors)
        offsets = base + np.arange(n_anchors * cells, dtype=np.int64) * n_fields
        levels.append((stride, grid, offsets, cell_idx, anchor_idx))
        base += cells * n_anchors * n_fields
    return levels


def decode_strided(output: np.ndarray, cfg: DecoderConfig) -> List[Candidate]:
    """
    Decode a multi-stride grid/anchor output.

    For grid cell i (row-major) and anchor a of a level with the given stride:
        x = (v(tx) * 2 - 0.5 + col) * stride
        y = (v(ty) * 2 - 0.5 + row) * stride
        w = exp(tw) * anchor_w,  h = exp(th) * anchor_h
    where v is sigmoid when `cfg.xy_sigmoid` is set and identity otherwise.
    """

    flat = _flatten(output)
    expected = cfg.expected_slots() * cfg.num_fields
    if flat.shape[0] != expected:
        logger.debug("Strided output has %d values, configuration expects %d", flat.shape[0], expected)

    out: List[Candidate] = []
    for (stride, grid, offsets, cell_idx, anchor_idx), group in zip(level_offsets(cfg), cfg.anchors):
        for slot, row, class_id, score in _candidate_slots(flat, offsets, cfg):
            row_i, col_i = divmod(int(cell_idx[slot]), grid)
            aw, ah = group[int(anchor_idx[slot])]
            txy = sigmoid(row[0:2]) if cfg.xy_sigmoid else row[0:2]
            with np.errstate(over="ignore"):
                twh = np.exp(row[2:4])
            x = (float(txy[0]) * 2.0 - 0.5 + col_i) * stride
            y = (float(txy[1]) * 2.0 - 0.5 + row_i) * stride
            w = float(twh[0]) * aw
            h = float(twh[1]) * ah
            out.append(
                Candidate(
                    class_id=class_id,
                    score=score,
                    box=(x - w / 2, y - h / 2, x + w / 2, y + h / 2),
                )
            )
    return out


def decode(output: np.ndarray, cfg: DecoderConfig) -> List[Candidate]:
    """Decode `output` with the layout selected in `cfg`; candidates come back in emission order."""
    if cfg.layout == "dense":
        return decode_dense(output, cfg)
    return decode_strided(output, cfg)
