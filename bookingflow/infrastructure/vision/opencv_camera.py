from __future__ import annotations

import logging
import time

import cv2

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.ports.camera import CameraPort
from bookingflow.domain.entities.detection import Frame


class OpenCVCamera(CameraPort):
    def __init__(self, index: int = 0, width: int = 1280, height: int = 720, jpeg_quality: int = 90) -> None:
        self._index = index
        self._width = width
        self._height = height
        self._jpeg_quality = jpeg_quality
        self._capture: cv2.VideoCapture | None = None
        self._logger = logging.getLogger(__name__)

    def open(self) -> None:
        if self._capture is not None:
            return
        capture = cv2.VideoCapture(self._index)
        if not capture.isOpened():
            capture.release()
            raise DeviceError(f"Cannot open camera {self._index}. Check that it is connected and permitted.")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        self._capture = capture
        self._logger.info(
            "Camera opened",
            extra={
                "camera_index": self._index,
                "width": int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
                "height": int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            },
        )

    def read_frame(self) -> Frame | None:
        if self._capture is None:
            raise DeviceError("Camera is not open")
        ok, pixels = self._capture.read()
        if not ok or pixels is None:
            return None
        height, width = pixels.shape[:2]
        return Frame(pixels=pixels, width=int(width), height=int(height), timestamp=time.monotonic())

    def encode(self, frame: Frame) -> bytes:
        ok, buffer = cv2.imencode(".jpg", frame.pixels, [int(cv2.IMWRITE_JPEG_QUALITY), self._jpeg_quality])
        if not ok:
            raise DeviceError("Failed to encode the captured frame")
        return buffer.tobytes()

    def close(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            self._logger.info("Camera released", extra={"camera_index": self._index})
