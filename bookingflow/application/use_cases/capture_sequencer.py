from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from bookingflow.application.exceptions import CaptureOrderError, ValidationError
from bookingflow.domain.entities.capture_session import CaptureSession, CaptureSlot


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CaptureSequencer:
    """
    Fills the slots of a capture session strictly in order.

    The pointer always sits on the first empty slot, so a normal capture moves
    it forward by one and a retake moves it back to the reopened slot.
    """

    def __init__(
        self,
        session: CaptureSession,
        on_reopen: Callable[[CaptureSlot], None] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session = session
        self._on_reopen = on_reopen
        self._clock = clock
        self._logger = logging.getLogger(__name__)
        self._sync_pointer()

    @property
    def session(self) -> CaptureSession:
        return self._session

    @property
    def pointer(self) -> int:
        return self._session.pointer

    @property
    def current_slot(self) -> CaptureSlot | None:
        return self._session.current_slot

    def capture(self, image: bytes, slot_id: str | None = None) -> CaptureSlot:
        slot = self._session.current_slot
        if slot is None:
            raise CaptureOrderError("Every capture slot is already filled")
        if slot_id is not None and slot_id != slot.id:
            raise CaptureOrderError(f"Expected a capture for slot '{slot.id}', got '{slot_id}'")
        if not image:
            raise ValidationError("Captured image is empty")

        slot.image = image
        slot.captured_at = self._clock()
        self._sync_pointer()
        self._logger.info(
            "Slot captured",
            extra={"slot_id": slot.id, "kind": slot.kind.value, "pointer": self._session.pointer},
        )
        return slot

    def retake(self, slot_id: str) -> CaptureSlot:
        index = self._session.index_of(slot_id)
        if index is None:
            raise CaptureOrderError(f"Unknown capture slot '{slot_id}'")
        slot = self._session.slots[index]
        if not slot.is_filled:
            raise CaptureOrderError(f"Slot '{slot_id}' has not been captured yet")

        slot.clear()
        self._sync_pointer()
        self._logger.info("Slot reopened for retake", extra={"slot_id": slot.id})
        if slot.is_biometric and self._on_reopen is not None:
            self._on_reopen(slot)
        return slot

    def is_complete(self) -> bool:
        return self._session.is_complete()

    def discard(self) -> None:
        for slot in self._session.slots:
            slot.clear()
        self._session.pointer = 0

    def _sync_pointer(self) -> None:
        for index, slot in enumerate(self._session.slots):
            if not slot.is_filled:
                self._session.pointer = index
                return
        self._session.pointer = len(self._session.slots)
