from __future__ import annotations

import logging
import time
from collections.abc import Iterable

import numpy as np

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.ports.camera import CameraPort
from bookingflow.application.ports.face_detector import FaceDetectorPort
from bookingflow.domain.entities.detection import Detection, Frame


class MockCamera(CameraPort):
    """Blank frames of a fixed size. `fail_open` simulates a missing or denied device."""

    def __init__(self, width: int = 640, height: int = 480, fail_open: bool = False) -> None:
        self._width = width
        self._height = height
        self._fail_open = fail_open
        self._opened = False
        self._frames = 0
        self.open_count = 0
        self.close_count = 0
        self._logger = logging.getLogger(__name__)

    @property
    def opened(self) -> bool:
        return self._opened

    def open(self) -> None:
        self.open_count += 1
        if self._fail_open:
            raise DeviceError("Camera permission denied")
        self._opened = True
        self._logger.info("Mock camera opened", extra={"width": self._width, "height": self._height})

    def read_frame(self) -> Frame | None:
        if not self._opened:
            raise DeviceError("Camera is not open")
        self._frames += 1
        pixels = np.zeros((self._height, self._width, 3), dtype=np.uint8)
        return Frame(pixels=pixels, width=self._width, height=self._height, timestamp=time.monotonic())

    def encode(self, frame: Frame) -> bytes:
        # JPEG SOI marker followed by the frame number keeps each still distinct.
        return b"\xff\xd8" + f"frame-{self._frames}".encode()

    def close(self) -> None:
        self.close_count += 1
        self._opened = False


class ScriptedFaceDetector(FaceDetectorPort):
    """
    Replays a script of face counts, one entry per frame.

    Once the script runs out the last entry repeats. Faces are placed centred
    at a comfortable distance so guidance reads GOOD for a single face.
    """

    def __init__(self, face_counts: Iterable[int] = (1,), fail_load: bool = False) -> None:
        self._script = list(face_counts) or [0]
        self._fail_load = fail_load
        self._cursor = 0

    def load(self) -> None:
        if self._fail_load:
            raise DeviceError("Face detection model is unavailable")

    def detect(self, frame: Frame) -> list[Detection]:
        index = min(self._cursor, len(self._script) - 1)
        self._cursor += 1
        count = self._script[index]
        side = min(frame.width, frame.height) * 0.45
        x = (frame.width - side) / 2
        y = (frame.height - side) / 2
        return [Detection(box=(x + i * side, y, side, side)) for i in range(count)]
