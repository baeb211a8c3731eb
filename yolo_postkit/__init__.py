"""
Reusable YOLO output post-processing: raw tensor -> labeled, de-duplicated boxes.

Framework-agnostic: works on NumPy arrays emitted by ONNX Runtime or any other
engine. Resizing/decoding images and running the model are left to the caller;
the only runtime dependency is NumPy (ONNX Runtime is optional, see `backends`).
"""

from .types import Candidate, Detection
from .errors import InvalidConfigurationError, OutOfBoundsError, PostprocessError, ShapeMismatchError
from .half import decode16, decode_array, encode16, encode_array, from_float16_tensor, to_float16_tensor
from .layout import Normalization, to_input_blob, to_interleaved, to_planar_tensor
from .config import DecoderConfig, load_decoder_config, parse_decoder_config
from .decode import decode, decode_dense, decode_strided
from .rescale import rescale_box, rescale_candidates
from .nms import iou, nms, suppress, suppress_per_class
from .labels import (
    detection_to_record,
    format_confidence,
    load_class_names,
    make_label_resolver,
    top_detections,
    translate_label,
)
from .runtime import DetectionPipeline, load_pipeline, pipeline_for_backend

__all__ = [
    "Candidate",
    "Detection",
    "InvalidConfigurationError",
    "OutOfBoundsError",
    "PostprocessError",
    "ShapeMismatchError",
    "decode16",
    "decode_array",
    "encode16",
    "encode_array",
    "from_float16_tensor",
    "to_float16_tensor",
    "Normalization",
    "to_input_blob",
    "to_interleaved",
    "to_planar_tensor",
    "DecoderConfig",
    "load_decoder_config",
    "parse_decoder_config",
    "decode",
    "decode_dense",
    "decode_strided",
    "rescale_box",
    "rescale_candidates",
    "iou",
    "nms",
    "suppress",
    "suppress_per_class",
    "detection_to_record",
    "format_confidence",
    "load_class_names",
    "make_label_resolver",
    "top_detections",
    "translate_label",
    "DetectionPipeline",
    "load_pipeline",
    "pipeline_for_backend",
]
