from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SlotKind(str, Enum):
    BIOMETRIC = "biometric"  # auto-captured behind the stability gate
    DOCUMENT = "document"  # manual trigger


@dataclass
class CaptureSlot:
    id: str
    label: str
    kind: SlotKind = SlotKind.BIOMETRIC
    required: bool = True
    image: bytes | None = None
    captured_at: datetime | None = None

    @property
    def is_filled(self) -> bool:
        return self.image is not None

    @property
    def is_biometric(self) -> bool:
        return self.kind is SlotKind.BIOMETRIC

    def clear(self) -> None:
        self.image = None
        self.captured_at = None


@dataclass
class CaptureSession:
    slots: list[CaptureSlot] = field(default_factory=list)
    pointer: int = 0

    @property
    def current_slot(self) -> CaptureSlot | None:
        if 0 <= self.pointer < len(self.slots):
            return self.slots[self.pointer]
        return None

    def index_of(self, slot_id: str) -> int | None:
        for index, slot in enumerate(self.slots):
            if slot.id == slot_id:
                return index
        return None

    def is_complete(self) -> bool:
        return all(slot.is_filled for slot in self.slots if slot.required)

    def filled_document_slots(self) -> list[CaptureSlot]:
        return [slot for slot in self.slots if not slot.is_biometric and slot.is_filled]


# (id, label, kind) in capture order
DEFAULT_SLOT_PLAN: tuple[tuple[str, str, SlotKind], ...] = (
    ("face_front", "Look straight at the camera", SlotKind.BIOMETRIC),
    ("face_left", "Turn your face slightly to the left", SlotKind.BIOMETRIC),
    ("face_right", "Turn your face slightly to the right", SlotKind.BIOMETRIC),
    ("id_front", "Front side of your ID card", SlotKind.DOCUMENT),
    ("id_back", "Back side of your ID card", SlotKind.DOCUMENT),
)


def build_session(plan: tuple[tuple[str, str, SlotKind], ...] = DEFAULT_SLOT_PLAN) -> CaptureSession:
    return CaptureSession(slots=[CaptureSlot(id=slot_id, label=label, kind=kind) for slot_id, label, kind in plan])
