from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PENDING_STAFF_CONFIRMATION = "PENDING_STAFF_CONFIRMATION"
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, raw: str | None) -> "OrderStatus":
        """Map a backend status literal onto the closed enum. Unknown literals raise ValueError."""
        if raw is None:
            raise ValueError("Order status is missing")
        key = str(raw).strip().upper().replace("-", "_").replace(" ", "_")
        if key in cls.__members__:
            return cls[key]
        if key in _STATUS_SYNONYMS:
            return _STATUS_SYNONYMS[key]
        raise ValueError(f"Unknown order status: {raw!r}")

    @property
    def is_modifiable(self) -> bool:
        return self is OrderStatus.PENDING


_STATUS_SYNONYMS: dict[str, OrderStatus] = {
    "CART": OrderStatus.PENDING,
    "DRAFT": OrderStatus.PENDING,
    "OPEN": OrderStatus.PENDING,
    "NEW": OrderStatus.PENDING,
    "WAITING_STAFF_CONFIRMATION": OrderStatus.PENDING_STAFF_CONFIRMATION,
    "AWAITING_STAFF_CONFIRMATION": OrderStatus.PENDING_STAFF_CONFIRMATION,
    "PENDING_CONFIRMATION": OrderStatus.PENDING_STAFF_CONFIRMATION,
    "ACCEPTED": OrderStatus.CONFIRMED,
    "DONE": OrderStatus.COMPLETED,
    "CANCELED": OrderStatus.CANCELLED,
    "AWAITING_PAYMENT": OrderStatus.PENDING_PAYMENT,
}


@dataclass(frozen=True)
class OrderItem:
    service_id: int
    quantity: int = 1
    id: int | None = None


@dataclass(frozen=True)
class OrderResource:
    id: int
    status: OrderStatus
    items: tuple[OrderItem, ...] = ()
    booking_id: int | None = None

    def has_service(self, service_id: int) -> bool:
        return any(item.service_id == service_id for item in self.items)


@dataclass(frozen=True)
class OrderRequest:
    booking_id: int | None
    service_id: int | None
    handler_id: int | None
    scheduled_time: datetime | None
    quantity: int = 1
    note: str | None = None
