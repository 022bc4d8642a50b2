from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class DateRange:
    check_in: datetime
    check_out: datetime


@dataclass(frozen=True)
class ReservationRequest:
    room_id: int | None
    date_range: DateRange | None
    num_guests: int = 1


@dataclass(frozen=True)
class EnrollmentStatus:
    registered: bool
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    slot_id: str
    content_type: str = "image/jpeg"
