from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import InvalidConfigurationError
from .types import Candidate, Detection

LabelResolver = Callable[[int], str]
LabelSource = Union[Mapping[int, str], Sequence[str], LabelResolver]

UNKNOWN_LABEL = "unknown"


def _parse_names_block(lines: Iterable[str]) -> Dict[int, str]:
    """
    Parse the lightweight `metadata.yaml` format:

        names:
          0: person
          1: bicycle
          ...
    """

    names: Dict[int, str] = {}
    in_names = False

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right

    return names


def _names_from_json(payload: Any, path: Path) -> Dict[int, str]:
    if isinstance(payload, dict) and "names" in payload:
        payload = payload["names"]
    if isinstance(payload, list):
        if not all(isinstance(n, str) for n in payload):
            raise InvalidConfigurationError(f"Label list must contain only strings: {path}")
        return {i: n for i, n in enumerate(payload)}
    if isinstance(payload, dict):
        names: Dict[int, str] = {}
        for key, value in payload.items():
            if not str(key).isdigit() or not isinstance(value, str):
                raise InvalidConfigurationError(f"Label map must be {{index: name}}: {path}")
            names[int(key)] = value
        return names
    raise InvalidConfigurationError(f"Unsupported label file layout: {path}")


def load_class_names(path: Path) -> Dict[int, str]:
    """
    Load an index -> class name table.

    Accepts a JSON list (`["person", "bicycle", ...]`), a JSON object
    (`{"0": "person", ...}` or `{"names": ...}`), or the `names:` block format
    used by `metadata.yaml`.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Label file not found: {path}")
    raw = path.read_text(encoding="utf-8")

    if path.suffix.lower() == ".json":
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise InvalidConfigurationError(f"Invalid label JSON: {path}") from exc
        return _names_from_json(payload, path)

    return _parse_names_block(raw.splitlines())


def make_label_resolver(names: LabelSource, default: str = UNKNOWN_LABEL) -> LabelResolver:
    """
    Wrap a mapping/list of names into a `class_id -> name` function.

    Missing indices resolve to `default`. Callables are returned unchanged.
    """

    if callable(names):
        return names
    if isinstance(names, Mapping):
        table: Dict[int, str] = dict(names)
    else:
        table = {i: n for i, n in enumerate(names)}

    def resolve(class_id: int) -> str:
        return table.get(class_id, default)

    return resolve


def translate_label(label: str, dictionary: Mapping[str, str], default: Optional[str] = None) -> str:
    """
    Look up a display name for `label`.

    Matching is case-insensitive and tries both the space and underscore spelling
    ("traffic light" / "traffic_light"). Falls back to `default`, or to the label
    itself when no default is given.
    """

    key = label.strip().lower()
    for variant in (label, key, key.replace(" ", "_"), key.replace("_", " ")):
        if variant in dictionary:
            return dictionary[variant]
    return label if default is None else default


def label_candidates(candidates: Iterable[Candidate], resolve: LabelResolver) -> List[Detection]:
    return [
        Detection(label=resolve(c.class_id), confidence=float(c.score), box=c.box, class_id=c.class_id)
        for c in candidates
    ]


def format_confidence(confidence: float) -> str:
    """0.91234 -> '91.23%'"""
    return f"{confidence * 100:.2f}%"


def top_detections(detections: Sequence[Detection], k: int = 10) -> List[Detection]:
    """Highest-confidence `k` detections; equal confidences keep their input order."""
    if k <= 0:
        return []
    return sorted(detections, key=lambda d: -d.confidence)[:k]


def detection_to_record(
    detection: Detection,
    translate: Optional[Callable[[str], str]] = None,
) -> Dict[str, Any]:
    """JSON-ready dict: label, optional localized label, percent confidence, box."""
    record: Dict[str, Any] = {"label": detection.label}
    if translate is not None:
        record["label_localized"] = translate(detection.label)
    record["confidence"] = format_confidence(detection.confidence)
    record["box"] = [float(v) for v in detection.box]
    return record
