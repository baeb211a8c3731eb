from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from numbers import Real
from pathlib import Path
from typing import Any, Dict, Sequence, Tuple

from .errors import InvalidConfigurationError
from .layout import NORMALIZATION_MODES, Normalization

LAYOUTS = ("dense", "strided")
SLOT_ORDERS = ("anchor-major", "cell-major")
ENCODINGS = ("float32", "float16")

Anchor = Tuple[float, float]

DEFAULT_STRIDES: Tuple[int, ...] = (8, 16, 32)
# YOLOv5 P3/8, P4/16, P5/32 anchor boxes (width, height) in input pixels.
DEFAULT_ANCHORS: Tuple[Tuple[Anchor, ...], ...] = (
    ((10, 13), (16, 30), (33, 23)),
    ((30, 61), (62, 45), (59, 119)),
    ((116, 90), (156, 198), (373, 326)),
)


def _coerce_strides(strides: Sequence[Any]) -> Tuple[int, ...]:
    out = []
    for s in strides:
        if isinstance(s, bool) or not isinstance(s, Real) or not float(s).is_integer():
            raise InvalidConfigurationError(f"strides must be integers, got {s!r}")
        out.append(int(s))
    return tuple(out)


def _coerce_anchors(anchors: Sequence[Any]) -> Tuple[Tuple[Anchor, ...], ...]:
    """Anchor groups as tuples of (w, h) pairs; flat groups like [10, 13, 16, 30] are rejected."""
    groups = []
    for group in anchors:
        if isinstance(group, (str, bytes)) or not isinstance(group, Sequence):
            raise InvalidConfigurationError(f"each anchor group must be a list of (w, h) pairs, got {group!r}")
        pairs = []
        for a in group:
            if (
                isinstance(a, (str, bytes))
                or not isinstance(a, Sequence)
                or len(a) != 2
                or not all(isinstance(v, Real) and not isinstance(v, bool) for v in a)
            ):
                raise InvalidConfigurationError(f"each anchor must be a (w, h) pair, got {a!r}")
            pairs.append((float(a[0]), float(a[1])))
        groups.append(tuple(pairs))
    return tuple(groups)


@dataclass(frozen=True)
class DecoderConfig:
    """
    Everything the decode -> rescale -> NMS chain needs to know about a model export.

    The strided layout's flattening order is a contract with the exported model:
    levels follow the order of `strides`, and `slot_order` says whether each level
    is laid out anchor-by-anchor ("anchor-major") or cell-by-cell ("cell-major").
    """

    input_size: int = 640
    num_classes: int = 80
    conf_threshold: float = 0.25
    iou_threshold: float = 0.45
    layout: str = "strided"
    strides: Tuple[int, ...] = DEFAULT_STRIDES
    anchors: Tuple[Tuple[Anchor, ...], ...] = DEFAULT_ANCHORS
    slot_order: str = "anchor-major"
    # Apply sigmoid to tx/ty before the `*2 - 0.5` grid offset (strided only).
    xy_sigmoid: bool = True
    # False for exports whose objectness/class fields are already probabilities.
    scores_are_logits: bool = True
    class_agnostic: bool = True
    max_detections: int = 300
    normalization: Normalization = field(default_factory=Normalization)
    input_encoding: str = "float32"
    output_encoding: str = "float32"

    def __post_init__(self) -> None:
        # Normalize list-y inputs (e.g. from JSON) to hashable tuples.
        object.__setattr__(self, "strides", _coerce_strides(self.strides))
        object.__setattr__(self, "anchors", _coerce_anchors(self.anchors))

        if self.input_size <= 0:
            raise InvalidConfigurationError("input_size must be > 0")
        if self.num_classes <= 0:
            raise InvalidConfigurationError("num_classes must be > 0")
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise InvalidConfigurationError("conf_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise InvalidConfigurationError("iou_threshold must be in [0, 1]")
        if self.max_detections <= 0:
            raise InvalidConfigurationError("max_detections must be > 0")
        if self.layout not in LAYOUTS:
            raise InvalidConfigurationError(f"layout must be one of {LAYOUTS}, got {self.layout!r}")
        if self.slot_order not in SLOT_ORDERS:
            raise InvalidConfigurationError(f"slot_order must be one of {SLOT_ORDERS}, got {self.slot_order!r}")
        if self.input_encoding not in ENCODINGS:
            raise InvalidConfigurationError(f"input_encoding must be one of {ENCODINGS}")
        if self.output_encoding not in ENCODINGS:
            raise InvalidConfigurationError(f"output_encoding must be one of {ENCODINGS}")

        if self.layout == "strided":
            if not self.strides:
                raise InvalidConfigurationError("strided layout needs at least one stride")
            for s in self.strides:
                if s <= 0:
                    raise InvalidConfigurationError("strides must be > 0")
                if self.input_size % s != 0:
                    raise InvalidConfigurationError(f"stride {s} does not divide input_size {self.input_size}")
            if len(self.anchors) != len(self.strides):
                raise InvalidConfigurationError(
                    f"Got {len(self.anchors)} anchor groups for {len(self.strides)} strides"
                )
            for group in self.anchors:
                if not group:
                    raise InvalidConfigurationError("each anchor group needs at least one (w, h) pair")
                if any(w <= 0 or h <= 0 for w, h in group):
                    raise InvalidConfigurationError("anchor sizes must be > 0")

    @property
    def num_fields(self) -> int:
        return 5 + self.num_classes

    def expected_slots(self) -> int:
        """Number of anchor slots a full strided output holds."""
        total = 0
        for stride, group in zip(self.strides, self.anchors):
            g = self.input_size // stride
            total += g * g * len(group)
        return total

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["strides"] = list(self.strides)
        payload["anchors"] = [[list(a) for a in group] for group in self.anchors]
        payload["normalization"] = {
            "mode": self.normalization.mode,
            "mean": list(self.normalization.mean),
            "std": list(self.normalization.std),
        }
        return payload


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfigurationError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{key} must be an integer")
    return int(value)


def _require_bool(payload: Dict[str, Any], key: str) -> bool:
    value = payload[key]
    if not isinstance(value, bool):
        raise InvalidConfigurationError(f"{key} must be a boolean")
    return value


def _require_str(payload: Dict[str, Any], key: str, allowed: Tuple[str, ...]) -> str:
    value = payload[key]
    if not isinstance(value, str) or value not in allowed:
        raise InvalidConfigurationError(f"{key} must be one of {allowed}")
    return value


def _parse_normalization(value: Any) -> Normalization:
    if isinstance(value, str):
        return Normalization(mode=value)
    if not isinstance(value, dict):
        raise InvalidConfigurationError("normalization must be a string or an object")
    unknown = sorted(set(value.keys()) - {"mode", "mean", "std"})
    if unknown:
        raise InvalidConfigurationError(f"Unknown normalization keys: {unknown}")
    kwargs: Dict[str, Any] = {}
    if "mode" in value:
        kwargs["mode"] = _require_str(value, "mode", NORMALIZATION_MODES)
    for key in ("mean", "std"):
        if key in value:
            seq = value[key]
            if not isinstance(seq, list) or not all(
                isinstance(v, (int, float)) and not isinstance(v, bool) for v in seq
            ):
                raise InvalidConfigurationError(f"normalization.{key} must be a list of numbers")
            kwargs[key] = tuple(float(v) for v in seq)
    return Normalization(**kwargs)


def _parse_anchors(value: Any) -> Tuple[Tuple[Anchor, ...], ...]:
    if not isinstance(value, list):
        raise InvalidConfigurationError("anchors must be a list of anchor groups")
    return _coerce_anchors(value)


def parse_decoder_config(payload: Dict[str, Any]) -> DecoderConfig:
    """Build a `DecoderConfig` from a JSON-like dict, rejecting unknown keys."""
    if not isinstance(payload, dict):
        raise InvalidConfigurationError("Decoder config must be a JSON object")

    int_keys = {"input_size", "num_classes", "max_detections"}
    float_keys = {"conf_threshold", "iou_threshold"}
    bool_keys = {"xy_sigmoid", "scores_are_logits", "class_agnostic"}
    str_keys = {
        "layout": LAYOUTS,
        "slot_order": SLOT_ORDERS,
        "input_encoding": ENCODINGS,
        "output_encoding": ENCODINGS,
    }
    allowed = int_keys | float_keys | bool_keys | set(str_keys) | {"strides", "anchors", "normalization"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise InvalidConfigurationError(f"Unknown decoder config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    for key in payload:
        if key in int_keys:
            kwargs[key] = _require_int(payload, key)
        elif key in float_keys:
            kwargs[key] = _require_number(payload, key)
        elif key in bool_keys:
            kwargs[key] = _require_bool(payload, key)
        elif key in str_keys:
            kwargs[key] = _require_str(payload, key, str_keys[key])

    if "strides" in payload:
        strides = payload["strides"]
        if not isinstance(strides, list) or not all(
            isinstance(s, int) and not isinstance(s, bool) for s in strides
        ):
            raise InvalidConfigurationError("strides must be a list of integers")
        kwargs["strides"] = tuple(strides)
    if "anchors" in payload:
        kwargs["anchors"] = _parse_anchors(payload["anchors"])
    if "normalization" in payload:
        kwargs["normalization"] = _parse_normalization(payload["normalization"])

    return DecoderConfig(**kwargs)


def load_decoder_config(path: Path) -> DecoderConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Decoder config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidConfigurationError(f"Invalid decoder config JSON: {path}") from exc
    return parse_decoder_config(payload)
