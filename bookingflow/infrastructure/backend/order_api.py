from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from bookingflow.application.exceptions import BackendError, ResourceConflict, TransientResourceStateError
from bookingflow.application.ports.order_backend import OrderBackendPort
from bookingflow.domain.entities.order import OrderItem, OrderResource, OrderStatus
from bookingflow.infrastructure.backend.http_client import BackendHttpClient


_NOT_MODIFIABLE_MARKERS = ("cannot be modified", "not modifiable", "can no longer be modified")
_ITEM_NOT_FOUND_MARKERS = ("item not found", "no items", "has no item")


class HttpOrderBackend(OrderBackendPort):
    def __init__(self, client: BackendHttpClient) -> None:
        self._client = client
        self._logger = logging.getLogger(__name__)

    def list_orders(self, booking_id: int) -> list[OrderResource]:
        data = self._client.get("/orders/my-orders", params={"bookingId": booking_id})
        if isinstance(data, dict):
            data = data.get("items") or data.get("content") or []
        if not isinstance(data, list):
            return []
        return [parse_order(raw) for raw in data if isinstance(raw, dict)]

    def create_resource(self, booking_id: int) -> int:
        data = self._client.post("/orders/cart", json={"bookingId": booking_id})
        resource_id = _extract_id(data)
        if resource_id is None:
            raise BackendError("The server did not return an order id")
        return resource_id

    def get_resource(self, resource_id: int) -> OrderResource:
        data = self._client.get(f"/orders/{resource_id}")
        if not isinstance(data, dict):
            raise BackendError("The server returned an unreadable order")
        return parse_order(data)

    def add_item(self, resource_id: int, service_id: int, quantity: int) -> None:
        try:
            self._client.post(
                f"/orders/{resource_id}/items",
                json={"serviceId": service_id, "quantity": quantity},
            )
        except BackendError as e:
            raise classify_conflict(e, item_context=False) from e

    def assign_handler(
        self,
        resource_id: int,
        handler_id: int,
        scheduled_time: datetime,
        note: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "assignedStaffId": handler_id,
            "serviceTime": scheduled_time.isoformat(),
        }
        if note:
            payload["note"] = note
        try:
            self._client.post(f"/orders/{resource_id}/assign", json=payload)
        except BackendError as e:
            raise classify_conflict(e, item_context=True) from e


def classify_conflict(error: BackendError, item_context: bool) -> BackendError:
    """Promote a backend rejection to a TransientResourceStateError when it describes a state race."""
    if isinstance(error, TransientResourceStateError):
        return error
    text = f"{error.detail or ''} {error.message}".lower()
    conflict: ResourceConflict | None = None
    if error.response_code == "E0010" or any(marker in text for marker in _NOT_MODIFIABLE_MARKERS):
        conflict = ResourceConflict.NOT_MODIFIABLE
    elif any(marker in text for marker in _ITEM_NOT_FOUND_MARKERS) or (
        item_context and error.response_code == "E0002"
    ):
        conflict = ResourceConflict.ITEM_NOT_FOUND
    if conflict is None:
        return error
    return TransientResourceStateError(
        conflict,
        error.message,
        status_code=error.status_code,
        response_code=error.response_code,
        detail=error.detail,
    )


def parse_order(raw: dict[str, Any]) -> OrderResource:
    resource_id = _extract_id(raw)
    if resource_id is None:
        raise BackendError("The server returned an order without an id")
    try:
        status = OrderStatus.parse(raw.get("status"))
    except ValueError as e:
        raise BackendError(f"Unexpected order status from server: {raw.get('status')!r}") from e

    raw_items = raw.get("items") or raw.get("orderItems") or []
    items: list[OrderItem] = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        service_id = item.get("serviceId")
        if service_id is None and isinstance(item.get("service"), dict):
            service_id = item["service"].get("id")
        if service_id is None:
            continue
        items.append(
            OrderItem(
                service_id=int(service_id),
                quantity=int(item.get("quantity") or 1),
                id=int(item["id"]) if item.get("id") is not None else None,
            )
        )

    booking_id = raw.get("bookingId")
    return OrderResource(
        id=resource_id,
        status=status,
        items=tuple(items),
        booking_id=int(booking_id) if booking_id is not None else None,
    )


def _extract_id(data: Any) -> int | None:
    if isinstance(data, bool):
        return None
    if isinstance(data, int):
        return data
    if isinstance(data, dict):
        for key in ("id", "orderId"):
            value = data.get(key)
            if value is not None:
                try:
                    return int(value)
                except (TypeError, ValueError):
                    return None
    return None
