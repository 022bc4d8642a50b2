from __future__ import annotations

import logging

import cv2
import numpy as np

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.ports.face_detector import FaceDetectorPort
from bookingflow.domain.entities.detection import Detection, Frame


class HaarFaceDetector(FaceDetectorPort):
    """
    Frontal-face Haar cascade with eye centres as landmarks.

    Good enough for positioning guidance; identity matching happens on the
    backend from the uploaded stills.
    """

    def __init__(
        self,
        face_cascade: str = "haarcascade_frontalface_default.xml",
        eye_cascade: str = "haarcascade_eye.xml",
        min_face_size: int = 80,
    ) -> None:
        self._face_cascade_name = face_cascade
        self._eye_cascade_name = eye_cascade
        self._min_face_size = min_face_size
        self._faces: cv2.CascadeClassifier | None = None
        self._eyes: cv2.CascadeClassifier | None = None
        self._logger = logging.getLogger(__name__)

    def load(self) -> None:
        if self._faces is not None:
            return
        faces = cv2.CascadeClassifier(cv2.data.haarcascades + self._face_cascade_name)
        if faces.empty():
            raise DeviceError("Failed to load the face detection model")
        eyes = cv2.CascadeClassifier(cv2.data.haarcascades + self._eye_cascade_name)
        self._faces = faces
        self._eyes = None if eyes.empty() else eyes
        self._logger.info("Face detector loaded", extra={"model": self._face_cascade_name})

    def detect(self, frame: Frame) -> list[Detection]:
        if self._faces is None:
            raise DeviceError("Face detector is not loaded")
        gray = _to_gray(frame.pixels)
        boxes = self._faces.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(self._min_face_size, self._min_face_size),
        )
        detections: list[Detection] = []
        for x, y, w, h in boxes:
            detections.append(
                Detection(
                    box=(float(x), float(y), float(w), float(h)),
                    landmarks=self._eye_centres(gray, int(x), int(y), int(w), int(h)),
                )
            )
        return detections

    def _eye_centres(self, gray: np.ndarray, x: int, y: int, w: int, h: int) -> tuple[tuple[float, float], ...]:
        if self._eyes is None:
            return ()
        # Eyes sit in the upper half of the face box.
        roi = gray[y : y + h // 2, x : x + w]
        eyes = self._eyes.detectMultiScale(roi, scaleFactor=1.1, minNeighbors=5)
        return tuple((float(x + ex + ew / 2), float(y + ey + eh / 2)) for ex, ey, ew, eh in eyes[:2])


def _to_gray(pixels: np.ndarray) -> np.ndarray:
    if pixels.ndim == 2:
        return pixels
    return cv2.cvtColor(pixels, cv2.COLOR_BGR2GRAY)
