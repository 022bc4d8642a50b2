from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Frame:
    pixels: Any
    width: int
    height: int
    timestamp: float = 0.0


@dataclass(frozen=True)
class Detection:
    box: tuple[float, float, float, float]  # x, y, width, height in pixels
    landmarks: tuple[tuple[float, float], ...] = ()
    score: float = 1.0

    def area(self) -> float:
        return max(0.0, self.box[2]) * max(0.0, self.box[3])


class FaceGuidance(str, Enum):
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    OFF_CENTER = "off_center"
    TOO_CLOSE = "too_close"
    TOO_FAR = "too_far"
    GOOD = "good"


@dataclass(frozen=True)
class DetectionTick:
    face_count: int
    bounding_boxes: tuple[tuple[float, float, float, float], ...]
    landmarks: tuple[tuple[tuple[float, float], ...], ...]
    detected: bool
    stability: int
    progress: float
    guidance: FaceGuidance
    capture: bool = False
