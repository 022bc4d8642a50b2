from __future__ import annotations

import logging
from datetime import datetime

from bookingflow.application.exceptions import BackendError, ResourceConflict, TransientResourceStateError
from bookingflow.application.ports.order_backend import OrderBackendPort
from bookingflow.application.ports.reservation_backend import ReservationBackendPort
from bookingflow.domain.entities.order import OrderItem, OrderResource, OrderStatus
from bookingflow.domain.entities.reservation import Attachment, DateRange, EnrollmentStatus


class InMemoryOrderBackend(OrderBackendPort):
    """
    Order backend kept in a dict.

    `set_status` stands in for staff or other clients changing an order, and
    `item_visibility_lag` keeps an order looking empty for the next N reads
    after its first item is added.
    """

    def __init__(self, item_visibility_lag: int = 0) -> None:
        self._orders: dict[int, dict] = {}
        self._next_id = 1
        self._failures: dict[str, list[BackendError]] = {}
        self._item_visibility_lag = item_visibility_lag
        self._hidden_reads: dict[int, int] = {}
        self._lagged: set[int] = set()
        self.calls: list[tuple[str, tuple]] = []
        self.assignments: dict[int, dict] = {}
        self._logger = logging.getLogger(__name__)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    def fail_next(self, operation: str, error: BackendError) -> None:
        self._failures.setdefault(operation, []).append(error)

    def set_status(self, resource_id: int, status: OrderStatus) -> None:
        self._require(resource_id)["status"] = status

    def seed(self, booking_id: int, status: OrderStatus = OrderStatus.PENDING) -> int:
        resource_id = self._next_id
        self._next_id += 1
        self._orders[resource_id] = {"booking_id": booking_id, "status": status, "items": []}
        return resource_id

    def list_orders(self, booking_id: int) -> list[OrderResource]:
        self._record("list_orders", booking_id)
        return [
            self._snapshot(resource_id, hide=False)
            for resource_id, order in self._orders.items()
            if order["booking_id"] == booking_id
        ]

    def create_resource(self, booking_id: int) -> int:
        self._record("create_resource", booking_id)
        resource_id = self.seed(booking_id)
        self._logger.info("Mock order created", extra={"resource_id": resource_id, "booking_id": booking_id})
        return resource_id

    def get_resource(self, resource_id: int) -> OrderResource:
        self._record("get_resource", resource_id)
        self._require(resource_id)
        return self._snapshot(resource_id, hide=True)

    def add_item(self, resource_id: int, service_id: int, quantity: int) -> None:
        self._record("add_item", resource_id, service_id, quantity)
        order = self._require(resource_id)
        if not order["status"].is_modifiable:
            raise TransientResourceStateError(
                ResourceConflict.NOT_MODIFIABLE,
                f"Order {resource_id} cannot be modified",
                status_code=409,
                response_code="E0010",
            )
        order["items"].append(OrderItem(service_id=service_id, quantity=quantity, id=len(order["items"]) + 1))
        if self._item_visibility_lag and resource_id not in self._lagged:
            self._lagged.add(resource_id)
            self._hidden_reads[resource_id] = self._item_visibility_lag

    def assign_handler(
        self,
        resource_id: int,
        handler_id: int,
        scheduled_time: datetime,
        note: str | None = None,
    ) -> None:
        self._record("assign_handler", resource_id, handler_id, scheduled_time, note)
        order = self._require(resource_id)
        if not order["status"].is_modifiable:
            raise TransientResourceStateError(
                ResourceConflict.NOT_MODIFIABLE,
                f"Order {resource_id} cannot be modified",
                status_code=409,
                response_code="E0010",
            )
        if not order["items"]:
            raise TransientResourceStateError(
                ResourceConflict.ITEM_NOT_FOUND,
                "Order has no items",
                status_code=400,
                response_code="E0002",
            )
        self.assignments[resource_id] = {"handler_id": handler_id, "scheduled_time": scheduled_time, "note": note}
        order["status"] = OrderStatus.PENDING_STAFF_CONFIRMATION

    def _record(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _require(self, resource_id: int | None) -> dict:
        order = self._orders.get(resource_id) if resource_id is not None else None
        if order is None:
            raise BackendError("Data not found.", status_code=404, response_code="E0002")
        return order

    def _snapshot(self, resource_id: int, hide: bool) -> OrderResource:
        order = self._orders[resource_id]
        items = tuple(order["items"])
        if hide and self._hidden_reads.get(resource_id, 0) > 0:
            self._hidden_reads[resource_id] -= 1
            items = ()
        return OrderResource(id=resource_id, status=order["status"], items=items, booking_id=order["booking_id"])


class MockReservationBackend(ReservationBackendPort):
    def __init__(self) -> None:
        self._reservations: dict[int, dict] = {}
        self._enrollments: dict[int, list[Attachment]] = {}
        self._failures: dict[str, list[BackendError]] = {}
        self.submissions: list[tuple[int, list[Attachment]]] = []
        self.deleted: list[int] = []
        self._logger = logging.getLogger(__name__)

    def fail_next(self, operation: str, error: BackendError) -> None:
        self._failures.setdefault(operation, []).append(error)

    def mark_registered(self, reservation_id: int) -> None:
        self._enrollments[reservation_id] = []

    def create_reservation(self, room_id: int, date_range: DateRange, num_guests: int = 1) -> int:
        self._raise_pending("create_reservation")
        reservation_id = len(self._reservations) + 1
        self._reservations[reservation_id] = {
            "room_id": room_id,
            "check_in": date_range.check_in,
            "check_out": date_range.check_out,
            "num_guests": num_guests,
        }
        self._logger.info("Mock reservation created", extra={"reservation_id": reservation_id, "room_id": room_id})
        return reservation_id

    def submit_enrollment(self, reservation_id: int, attachments: list[Attachment]) -> None:
        self._raise_pending("submit_enrollment")
        self.submissions.append((reservation_id, list(attachments)))
        self._enrollments[reservation_id] = list(attachments)
        self._logger.info(
            "Mock enrollment stored",
            extra={"reservation_id": reservation_id, "attachment_count": len(attachments)},
        )

    def get_enrollment_status(self, reservation_id: int) -> EnrollmentStatus:
        self._raise_pending("get_enrollment_status")
        if reservation_id not in self._enrollments:
            return EnrollmentStatus(registered=False)
        return EnrollmentStatus(
            registered=True,
            data={"imageCount": len(self._enrollments[reservation_id])},
        )

    def delete_enrollment(self, reservation_id: int) -> bool:
        self._raise_pending("delete_enrollment")
        self.deleted.append(reservation_id)
        return self._enrollments.pop(reservation_id, None) is not None

    def _raise_pending(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)
