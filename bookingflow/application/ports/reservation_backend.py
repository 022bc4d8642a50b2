from __future__ import annotations

from abc import ABC, abstractmethod

from bookingflow.domain.entities.reservation import Attachment, DateRange, EnrollmentStatus


class ReservationBackendPort(ABC):
    @abstractmethod
    def create_reservation(self, room_id: int, date_range: DateRange, num_guests: int = 1) -> int:
        """Create a room reservation. Returns reservation_id."""
        raise NotImplementedError

    @abstractmethod
    def submit_enrollment(self, reservation_id: int, attachments: list[Attachment]) -> None:
        """Upload all attachments in one multipart call. Raises BackendError on failure."""
        raise NotImplementedError

    @abstractmethod
    def get_enrollment_status(self, reservation_id: int) -> EnrollmentStatus:
        raise NotImplementedError

    @abstractmethod
    def delete_enrollment(self, reservation_id: int) -> bool:
        """Remove a previously registered enrollment. Returns True if removed."""
        raise NotImplementedError
