"""
Tests for packaging a capture session into an enrollment upload.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from bookingflow.application.exceptions import BackendError, UnrecoverableBackendError, ValidationError
from bookingflow.application.use_cases.capture_sequencer import CaptureSequencer
from bookingflow.application.use_cases.enrollment import EnrollmentSubmitter
from bookingflow.domain.entities.capture_session import build_session
from bookingflow.domain.entities.reservation import DateRange
from bookingflow.infrastructure.backend.mock_backend import MockReservationBackend


def _reserve(backend: MockReservationBackend) -> int:
    start = datetime.now() + timedelta(days=1)
    return backend.create_reservation(5, DateRange(check_in=start, check_out=start + timedelta(days=7)))


def test_single_face_is_padded_to_minimum():
    """Only face_front captured, three needed: payload has three copies of it."""
    backend = MockReservationBackend()
    reservation_id = _reserve(backend)
    session = build_session()
    CaptureSequencer(session).capture(b"front-face")

    result = EnrollmentSubmitter(backend, min_biometric_samples=3).submit(session, reservation_id)

    assert result.attachment_count == 3
    assert result.padded_count == 2
    submitted_id, attachments = backend.submissions[0]
    assert submitted_id == reservation_id
    assert [a.content for a in attachments] == [b"front-face"] * 3
    assert [a.slot_id for a in attachments] == ["face_front"] * 3


def test_full_session_keeps_slot_order_without_padding():
    backend = MockReservationBackend()
    reservation_id = _reserve(backend)
    session = build_session()
    sequencer = CaptureSequencer(session)
    for slot in list(session.slots):
        sequencer.capture(slot.id.encode(), slot_id=slot.id)

    result = EnrollmentSubmitter(backend).submit(session, reservation_id)

    attachments = backend.submissions[0][1]
    assert result.padded_count == 0
    assert [a.filename for a in attachments] == [
        "00-face_front.jpg",
        "01-face_left.jpg",
        "02-face_right.jpg",
        "03-id_front.jpg",
        "04-id_back.jpg",
    ]
    assert all(a.content_type == "image/jpeg" for a in attachments)


def test_documents_follow_padded_faces():
    backend = MockReservationBackend()
    session = build_session()
    session.slots[0].image = b"face"
    session.slots[3].image = b"card"

    attachments, padded = EnrollmentSubmitter(backend, min_biometric_samples=3).build_attachments(session)

    assert padded == 2
    assert [a.content for a in attachments] == [b"face", b"face", b"face", b"card"]


def test_no_face_image_is_rejected_before_upload():
    backend = MockReservationBackend()
    session = build_session()
    session.slots[3].image = b"card"

    with pytest.raises(ValidationError):
        EnrollmentSubmitter(backend).submit(session, 1)
    assert backend.submissions == []


def test_missing_reservation_is_rejected():
    session = build_session()
    session.slots[0].image = b"face"

    with pytest.raises(ValidationError):
        EnrollmentSubmitter(MockReservationBackend()).submit(session, None)


def test_upload_failure_leaves_reservation_in_place():
    backend = MockReservationBackend()
    reservation_id = _reserve(backend)
    backend.fail_next("submit_enrollment", BackendError("Service temporarily unavailable.", status_code=503))
    session = build_session()
    session.slots[0].image = b"face"

    with pytest.raises(UnrecoverableBackendError) as excinfo:
        EnrollmentSubmitter(backend).submit(session, reservation_id)

    assert excinfo.value.message == "Service temporarily unavailable."
    assert backend.deleted == []
    assert backend.get_enrollment_status(reservation_id).registered is False
