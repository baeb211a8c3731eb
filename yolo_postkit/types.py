from dataclasses import dataclass
from typing import Optional, Tuple

Box = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Candidate:
    """
    Decoder output: one box in network-input coordinates (xyxy) before suppression.
    """

    class_id: int
    score: float
    box: Box


@dataclass(frozen=True)
class Detection:
    """
    Final labeled detection in original-image pixel coordinates.
    """

    label: str
    confidence: float
    box: Box
    class_id: Optional[int] = None

    @property
    def x1(self) -> float:
        return self.box[0]

    @property
    def y1(self) -> float:
        return self.box[1]

    @property
    def x2(self) -> float:
        return self.box[2]

    @property
    def y2(self) -> float:
        return self.box[3]
