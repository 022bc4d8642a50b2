from datetime import datetime
from pydantic import BaseModel, Field


class OpenFlowRequestSchema(BaseModel):
    reservation_id: int | None = None


class FlowSchema(BaseModel):
    flow_id: str
    reservation_id: int | None = None
    enrolled: bool = False
    needs_capture: bool = True


class ReservationRequestSchema(BaseModel):
    room_id: int | None = None
    check_in: datetime | None = None
    check_out: datetime | None = None
    num_guests: int = 1


class ReservationResponseSchema(BaseModel):
    reservation_id: int
    enrolled: bool
    needs_capture: bool


class SlotSchema(BaseModel):
    id: str
    label: str
    kind: str
    filled: bool


class EnrollmentStatusSchema(BaseModel):
    reservation_id: int | None = None
    enrolled: bool
    needs_capture: bool
    slots: list[SlotSchema] = Field(default_factory=list)


class EnrollmentResponseSchema(BaseModel):
    reservation_id: int
    attachment_count: int
    padded_count: int


class OrderRequestSchema(BaseModel):
    booking_id: int | None = None
    service_id: int | None = None
    handler_id: int | None = None
    scheduled_time: datetime | None = None
    quantity: int = 1
    note: str | None = None


class OrderStateSchema(BaseModel):
    phase: str
    resource_id: int | None = None
    completed: bool = False
    last_error: str | None = None


class OrderRunResponseSchema(BaseModel):
    action: str
    phase: str | None = None
    resource_id: int | None = None
    error: str | None = None
