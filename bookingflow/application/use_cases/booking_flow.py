from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from bookingflow.application.exceptions import BackendError, UnrecoverableBackendError, ValidationError
from bookingflow.application.ports.reservation_backend import ReservationBackendPort
from bookingflow.application.use_cases.auto_capture import AutoCaptureLoop
from bookingflow.application.use_cases.capture_sequencer import CaptureSequencer
from bookingflow.application.use_cases.enrollment import EnrollmentResult, EnrollmentSubmitter
from bookingflow.application.use_cases.order_workflow import OrderWorkflowOrchestrator, WorkflowResult
from bookingflow.domain.entities.capture_session import CaptureSession, CaptureSlot, build_session
from bookingflow.domain.entities.order import OrderRequest
from bookingflow.domain.entities.reservation import ReservationRequest
from bookingflow.domain.entities.workflow_state import WorkflowState


def validate_reservation(request: ReservationRequest, now: datetime | None = None) -> None:
    if request.room_id is None:
        raise ValidationError("Invalid room")
    if request.date_range is None:
        raise ValidationError("Please choose check-in and check-out dates")
    check_in = request.date_range.check_in
    check_out = request.date_range.check_out
    if check_out <= check_in:
        raise ValidationError("Check-out must be after check-in")
    if now is not None and check_in.date() < now.date():
        raise ValidationError("Check-in cannot be in the past")
    if request.num_guests < 1:
        raise ValidationError("At least one guest is required")


class GuidedBookingFlow:
    """
    One user interaction: reserve a room, enroll the guest's face, order services.

    Owns the capture session and the order workflow state. Dismissing the flow
    drops both immediately; reservations or orders already created on the
    backend are left untouched.
    """

    def __init__(
        self,
        reservations: ReservationBackendPort,
        submitter: EnrollmentSubmitter,
        orchestrator: OrderWorkflowOrchestrator,
        require_enrollment: bool = False,
        session_factory: Callable[[], CaptureSession] = build_session,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._reservations = reservations
        self._submitter = submitter
        self._orchestrator = orchestrator
        self._require_enrollment = require_enrollment
        self._session_factory = session_factory
        self._clock = clock
        self._session: CaptureSession | None = session_factory()
        self._sequencer: CaptureSequencer | None = CaptureSequencer(self._session, on_reopen=self._on_slot_reopened)
        self._capture_loop: AutoCaptureLoop | None = None
        self._reservation_id: int | None = None
        self._already_registered = False
        self._enrolled = False
        self._dismissed = False
        self._logger = logging.getLogger(__name__)

    @property
    def reservation_id(self) -> int | None:
        return self._reservation_id

    @property
    def enrolled(self) -> bool:
        return self._enrolled

    @property
    def dismissed(self) -> bool:
        return self._dismissed

    @property
    def needs_capture(self) -> bool:
        return not self._enrolled

    @property
    def session(self) -> CaptureSession | None:
        return self._session

    @property
    def sequencer(self) -> CaptureSequencer:
        self._ensure_open()
        assert self._sequencer is not None
        return self._sequencer

    @property
    def workflow_state(self) -> WorkflowState | None:
        return self._orchestrator.state

    def attach_capture_loop(self, loop: AutoCaptureLoop) -> None:
        self._capture_loop = loop

    def restart_capture(self) -> CaptureSequencer:
        """Throw away every captured image and start over from the first slot."""
        self._ensure_open()
        if self._sequencer is not None:
            self._sequencer.discard()
        self._session = self._session_factory()
        self._sequencer = CaptureSequencer(self._session, on_reopen=self._on_slot_reopened)
        return self._sequencer

    def use_reservation(self, reservation_id: int) -> None:
        """Attach a reservation created elsewhere and refresh its enrollment status."""
        self._ensure_open()
        self._reservation_id = reservation_id
        self._refresh_enrollment_status()

    def reserve(self, request: ReservationRequest) -> int:
        self._ensure_open()
        validate_reservation(request, now=self._clock())
        assert request.room_id is not None and request.date_range is not None
        try:
            reservation_id = self._reservations.create_reservation(
                request.room_id, request.date_range, request.num_guests
            )
        except BackendError as e:
            self._logger.error("Reservation failed", extra={"room_id": request.room_id, "error": e.message})
            raise UnrecoverableBackendError(e.message) from e
        self._logger.info("Reservation created", extra={"reservation_id": reservation_id, "room_id": request.room_id})
        self._reservation_id = reservation_id
        self._refresh_enrollment_status()
        return reservation_id

    def submit_enrollment(self, recapture: bool = False) -> EnrollmentResult:
        self._ensure_open()
        if self._reservation_id is None:
            raise ValidationError("A reservation is required before enrollment")
        if self._already_registered and not recapture:
            raise ValidationError("A face enrollment already exists for this reservation")
        if self._already_registered:
            try:
                removed = self._reservations.delete_enrollment(self._reservation_id)
            except BackendError as e:
                removed = False
                self._logger.warning(
                    "Could not remove the previous enrollment, registering anyway",
                    extra={"reservation_id": self._reservation_id, "error": e.message},
                )
            if removed:
                self._already_registered = False
        assert self._session is not None
        result = self._submitter.submit(self._session, self._reservation_id)
        self._enrolled = True
        self._already_registered = True
        return result

    def start_order(self, request: OrderRequest) -> WorkflowState:
        self._ensure_open()
        if self._require_enrollment and not self._enrolled:
            raise ValidationError("Face enrollment must be completed before ordering services")
        return self._orchestrator.open(request)

    def advance_order(self) -> WorkflowState:
        self._ensure_open()
        return self._orchestrator.advance()

    def run_order(self) -> WorkflowResult:
        self._ensure_open()
        return self._orchestrator.run()

    def dismiss(self) -> None:
        if self._dismissed:
            return
        self._dismissed = True
        if self._capture_loop is not None:
            self._capture_loop.close()
            self._capture_loop = None
        self._orchestrator.dismiss()
        if self._sequencer is not None:
            self._sequencer.discard()
        self._sequencer = None
        self._session = None
        self._logger.info("Booking flow dismissed", extra={"reservation_id": self._reservation_id})

    def _refresh_enrollment_status(self) -> None:
        assert self._reservation_id is not None
        try:
            status = self._reservations.get_enrollment_status(self._reservation_id)
        except BackendError as e:
            self._logger.warning(
                "Enrollment status unavailable, assuming not registered",
                extra={"reservation_id": self._reservation_id, "error": e.message},
            )
            return
        self._already_registered = status.registered
        self._enrolled = status.registered

    def _on_slot_reopened(self, slot: CaptureSlot) -> None:
        if self._capture_loop is not None:
            self._capture_loop.restart(slot)

    def _ensure_open(self) -> None:
        if self._dismissed:
            raise ValidationError("This booking flow was dismissed")
