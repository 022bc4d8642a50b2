from __future__ import annotations

import logging

from bookingflow.application.exceptions import DeviceError
from bookingflow.application.ports.face_detector import FaceDetectorPort
from bookingflow.application.utils.guidance import evaluate_guidance
from bookingflow.domain.entities.detection import DetectionTick, FaceGuidance, Frame


class FrameAnalyzer:
    """
    Per-tick face analysis with a stability gate.

    The stability counter and the in-flight capture guard are plain fields so
    the gate can be exercised tick by tick without a timer or a camera.
    """

    def __init__(
        self,
        detector: FaceDetectorPort,
        threshold: int = 15,
        center_tolerance: float = 0.15,
        min_face_area: float = 0.08,
        max_face_area: float = 0.35,
    ) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self._detector = detector
        self._threshold = threshold
        self._center_tolerance = center_tolerance
        self._min_face_area = min_face_area
        self._max_face_area = max_face_area
        self._loaded = False
        self.stability = 0
        self.capture_in_flight = False
        self._logger = logging.getLogger(__name__)

    def prepare(self) -> None:
        if self._loaded:
            return
        try:
            self._detector.load()
        except DeviceError:
            raise
        except Exception as e:
            raise DeviceError(f"Face detector failed to load: {e}") from e
        self._loaded = True

    def analyze(self, frame: Frame) -> DetectionTick:
        try:
            detections = self._detector.detect(frame)
        except DeviceError:
            raise
        except Exception as e:
            raise DeviceError(f"Face detection failed: {e}") from e

        face_count = len(detections)
        guidance = evaluate_guidance(
            detections,
            frame,
            center_tolerance=self._center_tolerance,
            min_face_area=self._min_face_area,
            max_face_area=self._max_face_area,
        )
        boxes = tuple(d.box for d in detections)
        landmarks = tuple(d.landmarks for d in detections)

        if face_count != 1:
            self.stability = 0
            if guidance is FaceGuidance.MULTIPLE_FACES:
                self._logger.debug("Ambiguous subjects in frame", extra={"face_count": face_count})
            return DetectionTick(
                face_count=face_count,
                bounding_boxes=boxes,
                landmarks=landmarks,
                detected=False,
                stability=0,
                progress=0.0,
                guidance=guidance,
            )

        self.stability += 1
        progress = min(self.stability / self._threshold, 1.0)
        capture = False
        if self.stability == self._threshold and not self.capture_in_flight:
            capture = True
            self.capture_in_flight = True
            self.stability = 0

        return DetectionTick(
            face_count=1,
            bounding_boxes=boxes,
            landmarks=landmarks,
            detected=True,
            stability=self.stability,
            progress=progress,
            guidance=guidance,
            capture=capture,
        )

    def release(self) -> None:
        """Clear the in-flight guard once the triggered capture has been handled."""
        self.capture_in_flight = False
        self.stability = 0

    def reset(self) -> None:
        self.release()
