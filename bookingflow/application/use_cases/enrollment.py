from __future__ import annotations

import logging
from dataclasses import dataclass

from bookingflow.application.exceptions import BackendError, UnrecoverableBackendError, ValidationError
from bookingflow.application.ports.reservation_backend import ReservationBackendPort
from bookingflow.domain.entities.capture_session import CaptureSession
from bookingflow.domain.entities.reservation import Attachment


@dataclass(frozen=True)
class EnrollmentResult:
    reservation_id: int
    attachment_count: int
    padded_count: int


class EnrollmentSubmitter:
    def __init__(self, backend: ReservationBackendPort, min_biometric_samples: int = 3) -> None:
        if min_biometric_samples < 1:
            raise ValueError("min_biometric_samples must be at least 1")
        self._backend = backend
        self._min_biometric = min_biometric_samples
        self._logger = logging.getLogger(__name__)

    def build_attachments(self, session: CaptureSession) -> tuple[list[Attachment], int]:
        """
        Package the captured images in slot order.

        Biometric images come first. When fewer than the required number were
        captured, the first biometric image is repeated until the minimum is
        reached. Returns the attachments and how many were padded.
        """
        biometric = [(slot.id, slot.image) for slot in session.slots if slot.is_biometric and slot.image is not None]
        if not biometric:
            raise ValidationError("At least one face image is required for enrollment")

        padded = 0
        first_id, first_image = biometric[0]
        while len(biometric) < self._min_biometric:
            biometric.append((first_id, first_image))
            padded += 1

        pairs = biometric + [(slot.id, slot.image) for slot in session.filled_document_slots()]
        attachments = [
            Attachment(filename=f"{index:02d}-{slot_id}.jpg", content=image, slot_id=slot_id)
            for index, (slot_id, image) in enumerate(pairs)
        ]
        return attachments, padded

    def submit(self, session: CaptureSession, reservation_id: int | None) -> EnrollmentResult:
        if reservation_id is None:
            raise ValidationError("A reservation is required before enrollment")

        attachments, padded = self.build_attachments(session)
        if padded:
            self._logger.warning(
                "Padding enrollment with duplicate face images",
                extra={"reservation_id": reservation_id, "padded": padded},
            )

        try:
            self._backend.submit_enrollment(reservation_id, attachments)
        except BackendError as e:
            # The reservation created upstream is left as is.
            self._logger.error(
                "Enrollment submission failed",
                extra={"reservation_id": reservation_id, "error": e.message},
            )
            raise UnrecoverableBackendError(e.message) from e

        self._logger.info(
            "Enrollment submitted",
            extra={"reservation_id": reservation_id, "attachments": len(attachments)},
        )
        return EnrollmentResult(
            reservation_id=reservation_id,
            attachment_count=len(attachments),
            padded_count=padded,
        )
