from __future__ import annotations

from abc import ABC, abstractmethod

from bookingflow.domain.entities.detection import Detection, Frame


class FaceDetectorPort(ABC):
    @abstractmethod
    def load(self) -> None:
        """Load the detection model. Raises DeviceError on failure."""
        raise NotImplementedError

    @abstractmethod
    def detect(self, frame: Frame) -> list[Detection]:
        """Return every face found in the frame."""
        raise NotImplementedError
