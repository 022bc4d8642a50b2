from __future__ import annotations

import logging
from typing import Any

from bookingflow.application.exceptions import BackendError
from bookingflow.application.ports.reservation_backend import ReservationBackendPort
from bookingflow.domain.entities.reservation import Attachment, DateRange, EnrollmentStatus
from bookingflow.infrastructure.backend.http_client import BackendHttpClient


class HttpReservationBackend(ReservationBackendPort):
    def __init__(self, client: BackendHttpClient) -> None:
        self._client = client
        self._logger = logging.getLogger(__name__)

    def create_reservation(self, room_id: int, date_range: DateRange, num_guests: int = 1) -> int:
        data = self._client.post(
            "/bookings",
            json={
                "roomId": room_id,
                "checkinDate": date_range.check_in.isoformat(),
                "checkoutDate": date_range.check_out.isoformat(),
                "numGuests": num_guests,
            },
        )
        reservation_id = _extract_reservation_id(data)
        if reservation_id is None:
            raise BackendError("The server did not return a booking id")
        return reservation_id

    def submit_enrollment(self, reservation_id: int, attachments: list[Attachment]) -> None:
        files = [
            ("images", (attachment.filename, attachment.content, attachment.content_type))
            for attachment in attachments
        ]
        self._client.post(f"/bookings/{reservation_id}/face", files=files)
        self._logger.info(
            "Enrollment uploaded",
            extra={"reservation_id": reservation_id, "attachment_count": len(attachments)},
        )

    def get_enrollment_status(self, reservation_id: int) -> EnrollmentStatus:
        try:
            data = self._client.get(f"/bookings/{reservation_id}/face")
        except BackendError as e:
            if e.status_code == 404:
                return EnrollmentStatus(registered=False)
            raise
        if not data:
            return EnrollmentStatus(registered=False)
        if isinstance(data, dict):
            registered = data.get("registered")
            return EnrollmentStatus(registered=True if registered is None else bool(registered), data=data)
        return EnrollmentStatus(registered=True)

    def delete_enrollment(self, reservation_id: int) -> bool:
        try:
            self._client.delete(f"/bookings/{reservation_id}/face")
        except BackendError as e:
            self._logger.warning(
                "Enrollment delete failed",
                extra={"reservation_id": reservation_id, "error": e.message},
            )
            return False
        return True


def _extract_reservation_id(data: Any) -> int | None:
    if isinstance(data, int) and not isinstance(data, bool):
        return data
    if isinstance(data, dict):
        for key in ("id", "bookingId"):
            value = data.get(key)
            if value is not None:
                try:
                    return int(value)
                except (TypeError, ValueError):
                    return None
    return None
