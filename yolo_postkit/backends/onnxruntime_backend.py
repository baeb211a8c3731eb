from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Union

import numpy as np

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

FLOAT16_TYPE = "tensor(float16)"


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects an NCHW blob shaped (1, 3, H, W), float32 or float16 depending on the
    model's declared input type (see `input_is_float16`). Returns the primary
    output as a NumPy array.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        providers = list(cfg.providers) if cfg.providers is not None else None
        session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        self._bind(session, cfg)

    @classmethod
    def from_session(cls, session: Any, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()) -> "OnnxRuntimeBackend":
        """Wrap an already created `InferenceSession` (or anything with the same API)."""
        backend = cls.__new__(cls)
        backend.model_path = None
        backend._bind(session, cfg)
        return backend

    def _bind(self, session: Any, cfg: OnnxRuntimeBackendConfig) -> None:
        self.session = session
        inputs = {i.name: i for i in session.get_inputs()}
        outputs = {o.name: o for o in session.get_outputs()}

        self.input_name = cfg.input_name or session.get_inputs()[0].name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or session.get_outputs()[0].name
        if self.input_name not in inputs:
            raise ValueError(f"Model has no input named {self.input_name!r}")
        if self.output_name not in outputs:
            raise ValueError(f"Model has no output named {self.output_name!r}")

        self.input_is_float16 = inputs[self.input_name].type == FLOAT16_TYPE
        self.output_is_float16 = outputs[self.output_name].type == FLOAT16_TYPE
        logger.debug(
            "ORT input %s (%s), output %s (%s)",
            self.input_name,
            inputs[self.input_name].type,
            self.output_name,
            outputs[self.output_name].type,
        )

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> np.ndarray:
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return outputs[0]
