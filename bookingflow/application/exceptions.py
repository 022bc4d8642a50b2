from __future__ import annotations

from enum import Enum


class BookingFlowError(RuntimeError):
    """Base class for errors raised by the enrollment and ordering workflow."""
    pass


class ValidationError(BookingFlowError):
    """Raised when local input checks fail. Never reaches the network."""
    pass


class CaptureOrderError(ValidationError):
    """Raised when a capture or retake targets a slot other than the one allowed."""
    pass


class PhaseInFlightError(ValidationError):
    """Raised when a workflow phase is invoked while its own call is still outstanding."""
    pass


class DeviceError(BookingFlowError):
    """Raised when the camera or the face detector is unavailable."""
    pass


class ResourceConflict(str, Enum):
    NOT_MODIFIABLE = "not_modifiable"
    ITEM_NOT_FOUND = "item_not_found"


class BackendError(BookingFlowError):
    """Raised when the backend rejects a call or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_code: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response_code = response_code
        self.detail = detail


class TransientResourceStateError(BackendError):
    """Raised when the order resource changed state underneath the client."""

    def __init__(
        self,
        conflict: ResourceConflict,
        message: str,
        status_code: int | None = None,
        response_code: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, response_code=response_code, detail=detail)
        self.conflict = conflict


class UnrecoverableBackendError(BookingFlowError):
    """Raised when recovery is exhausted. The message is shown to the user as is."""

    def __init__(self, message: str, phase: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.phase = phase


class WorkflowDismissedError(BookingFlowError):
    """Raised when a dismissed workflow would otherwise issue a backend call."""
    pass
