from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple, Union

import numpy as np

from .config import DecoderConfig
from .decode import decode
from .half import from_float16_tensor, to_float16_tensor
from .labels import LabelSource, label_candidates, make_label_resolver
from .layout import PixelBuffer, to_input_blob, to_planar_tensor
from .nms import suppress, suppress_per_class
from .rescale import is_degenerate, rescale_candidates
from .types import Candidate, Detection

if TYPE_CHECKING:
    from .backends.onnxruntime_backend import OnnxRuntimeBackend

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DetectionPipeline:
    """
    Plug-and-play pipeline: planar tensor -> inference -> decode -> rescale -> NMS -> labels.

    The pipeline expects an RGB pixel buffer already resized to
    `cfg.input_size` x `cfg.input_size` and returns a list of `Detection` in
    original image coordinates. `infer_fn` receives the (1, 3, S, S) blob and
    returns the model's raw output tensor.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        cfg: DecoderConfig = DecoderConfig(),
        *,
        class_names: Optional[LabelSource] = None,
        backend: Optional[object] = None,
    ):
        self._infer_fn = infer_fn
        self.cfg = cfg
        self.backend = backend
        self.resolve_label = make_label_resolver(class_names if class_names is not None else {})

    def preprocess(self, pixels: PixelBuffer) -> np.ndarray:
        size = self.cfg.input_size
        tensor = to_planar_tensor(pixels, size, size, self.cfg.normalization)
        blob = to_input_blob(tensor)
        if self.cfg.input_encoding == "float16":
            blob = to_float16_tensor(blob)
        return blob

    def decode_output(self, raw: np.ndarray) -> np.ndarray:
        """Undo the 16-bit output encoding when configured; always returns float32."""
        if self.cfg.output_encoding == "float16":
            return from_float16_tensor(raw)
        return np.asarray(raw, dtype=np.float32)

    def candidates(self, raw: np.ndarray, orig_size: Tuple[int, int]) -> List[Candidate]:
        """Decode, rescale to `orig_size` (width, height), drop zero-area boxes and suppress."""
        cfg = self.cfg
        decoded = decode(self.decode_output(raw), cfg)
        size = (cfg.input_size, cfg.input_size)
        scaled = [c for c in rescale_candidates(decoded, size, orig_size) if not is_degenerate(c.box)]

        if cfg.class_agnostic:
            kept = suppress(scaled, cfg.iou_threshold, cfg.max_detections)
        else:
            kept = suppress_per_class(scaled, cfg.iou_threshold, cfg.max_detections)

        logger.debug(
            "decoded=%d after_rescale=%d kept=%d (conf>=%.2f, iou<=%.2f)",
            len(decoded),
            len(scaled),
            len(kept),
            cfg.conf_threshold,
            cfg.iou_threshold,
        )
        return kept

    def postprocess(self, raw: np.ndarray, orig_size: Tuple[int, int]) -> List[Detection]:
        return label_candidates(self.candidates(raw, orig_size), self.resolve_label)

    def __call__(self, pixels: PixelBuffer, orig_size: Tuple[int, int]) -> List[Detection]:
        blob = self.preprocess(pixels)
        raw = self._infer_fn(blob)
        return self.postprocess(raw, orig_size)


def load_pipeline(
    model_path: PathLike,
    cfg: DecoderConfig = DecoderConfig(),
    *,
    class_names: Optional[LabelSource] = None,
    onnx_providers: Optional[List[str]] = None,
) -> DetectionPipeline:
    """
    Create a pipeline around an ONNX model on disk.

    The tensor encodings in `cfg` are switched to float16 when the model's
    input/output are declared as float16.
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    backend = OnnxRuntimeBackend(Path(model_path), OnnxRuntimeBackendConfig(providers=onnx_providers))
    return pipeline_for_backend(backend, cfg, class_names=class_names)


def pipeline_for_backend(
    backend: "OnnxRuntimeBackend",
    cfg: DecoderConfig = DecoderConfig(),
    *,
    class_names: Optional[LabelSource] = None,
) -> DetectionPipeline:
    cfg = replace(
        cfg,
        input_encoding="float16" if backend.input_is_float16 else "float32",
        output_encoding="float16" if backend.output_is_float16 else "float32",
    )
    logger.info(
        "Using %s input / %s output encoding for %s",
        cfg.input_encoding,
        cfg.output_encoding,
        getattr(backend, "model_path", "<session>"),
    )
    return DetectionPipeline(backend.infer, cfg, class_names=class_names, backend=backend)
