from __future__ import annotations

import argparse
import time
from typing import List

import numpy as np

from yolo_postkit import Candidate, DecoderConfig, decode, suppress, suppress_per_class


def _report(label: str, samples_s: List[float]) -> str:
    ms = np.asarray(samples_s, dtype=np.float64) * 1000.0
    p50, p95 = np.percentile(ms, [50.0, 95.0])
    return f"{label}: n={ms.size} mean={ms.mean():.3f}ms p50={p50:.3f}ms p95={p95:.3f}ms max={ms.max():.3f}ms"


def _synthetic_output(cfg: DecoderConfig, n_boxes: int, rng: np.random.Generator) -> np.ndarray:
    """Strided output with `n_boxes` random confident slots, everything else background."""
    out = np.zeros((cfg.expected_slots(), cfg.num_fields), dtype=np.float32)
    out[:, 4] = -10.0
    slots = rng.choice(out.shape[0], size=min(n_boxes, out.shape[0]), replace=False)
    out[slots, 0:2] = rng.normal(0.0, 1.0, size=(slots.size, 2))
    out[slots, 2:4] = rng.normal(0.0, 0.5, size=(slots.size, 2))
    out[slots, 4] = rng.uniform(0.0, 6.0, size=slots.size)
    out[slots, 5:] = rng.normal(-4.0, 2.0, size=(slots.size, cfg.num_classes))
    out[slots, 5 + rng.integers(0, cfg.num_classes, size=slots.size)] = 6.0
    return out[None, ...]


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Model-free benchmark of decode and class-agnostic vs per-class suppression."
    )
    parser.add_argument("--boxes", type=int, default=500, help="Number of confident slots in the synthetic output.")
    parser.add_argument("--imgsz", type=int, default=640, help="Network input size.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--warmup", type=int, default=5, help="Warmup iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=50, help="Recorded iterations.")
    args = parser.parse_args()

    if args.boxes < 1:
        raise ValueError("--boxes must be >= 1")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    cfg = DecoderConfig(input_size=int(args.imgsz), conf_threshold=float(args.conf), iou_threshold=float(args.iou))
    raw = _synthetic_output(cfg, int(args.boxes), np.random.default_rng(0))

    t_decode: List[float] = []
    t_agnostic: List[float] = []
    t_per_class: List[float] = []
    cands: List[Candidate] = []
    for i in range(int(args.warmup) + int(args.repeats)):
        t0 = time.perf_counter()
        cands = decode(raw, cfg)
        t1 = time.perf_counter()
        _ = suppress(cands, cfg.iou_threshold, cfg.max_detections)
        t2 = time.perf_counter()
        _ = suppress_per_class(cands, cfg.iou_threshold, cfg.max_detections)
        t3 = time.perf_counter()
        if i < int(args.warmup):
            continue
        t_decode.append(t1 - t0)
        t_agnostic.append(t2 - t1)
        t_per_class.append(t3 - t2)

    print(_report("decode", t_decode))
    print(_report("nms_class_agnostic", t_agnostic))
    print(_report("nms_per_class", t_per_class))
    print(f"candidates={len(cands)} samples_recorded={len(t_decode)} warmup={int(args.warmup)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
