from __future__ import annotations

from abc import ABC, abstractmethod

from bookingflow.domain.entities.detection import Frame


class CameraPort(ABC):
    @abstractmethod
    def open(self) -> None:
        """Acquire the device. Raises DeviceError when unavailable or permission is denied."""
        raise NotImplementedError

    @abstractmethod
    def read_frame(self) -> Frame | None:
        """Return the latest frame, or None when no frame is ready yet."""
        raise NotImplementedError

    @abstractmethod
    def encode(self, frame: Frame) -> bytes:
        """Encode a frame as a JPEG still."""
        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        raise NotImplementedError
