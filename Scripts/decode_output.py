import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

import numpy as np

from yolo_postkit import (
    DecoderConfig,
    DetectionPipeline,
    detection_to_record,
    load_class_names,
    load_decoder_config,
    top_detections,
    translate_label,
)


def setup_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Post-process a saved raw YOLO output tensor into labeled detections.")
    parser.add_argument("--output", required=True, help="Path to the raw output tensor (.npy).")
    parser.add_argument("--config", default=None, help="Decoder config JSON (defaults: strided YOLOv5, 640, 80 classes).")
    parser.add_argument("--labels", default=None, help="Class names (.json list/object or metadata.yaml).")
    parser.add_argument("--translations", default=None, help="Optional JSON object mapping class name -> display name.")
    parser.add_argument("--width", type=int, required=True, help="Original image width in pixels.")
    parser.add_argument("--height", type=int, required=True, help="Original image height in pixels.")
    parser.add_argument("--conf", type=float, default=None, help="Override confidence threshold.")
    parser.add_argument("--iou", type=float, default=None, help="Override IoU threshold for NMS.")
    parser.add_argument("--top", type=int, default=0, help="Only print the top-K detections (0 = all).")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args()

    setup_logging(args.log_level)
    log = logging.getLogger("decode_output")

    cfg = load_decoder_config(Path(args.config)) if args.config else DecoderConfig()
    if args.conf is not None:
        cfg = replace(cfg, conf_threshold=args.conf)
    if args.iou is not None:
        cfg = replace(cfg, iou_threshold=args.iou)

    class_names = load_class_names(Path(args.labels)) if args.labels else {}
    translate = None
    if args.translations:
        dictionary = json.loads(Path(args.translations).read_text(encoding="utf-8"))
        translate = lambda label: translate_label(label, dictionary)  # noqa: E731

    raw = np.load(args.output)
    log.info("Loaded output tensor %s (%s) from %s", raw.shape, raw.dtype, args.output)

    # No inference here: the tensor was produced elsewhere.
    pipeline = DetectionPipeline(lambda blob: raw, cfg, class_names=class_names)
    detections = pipeline.postprocess(raw, orig_size=(args.width, args.height))
    if args.top > 0:
        detections = top_detections(detections, args.top)

    log.info("%d detection(s)", len(detections))
    print(json.dumps([detection_to_record(d, translate) for d in detections], ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
