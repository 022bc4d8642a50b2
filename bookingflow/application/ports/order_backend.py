from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from bookingflow.domain.entities.order import OrderResource


class OrderBackendPort(ABC):
    """
    Stateful order (cart) resource held by the backend.

    Every method raises BackendError on failure, or TransientResourceStateError
    when the resource is no longer modifiable or the item is missing. None of
    the calls are idempotent.
    """

    @abstractmethod
    def list_orders(self, booking_id: int) -> list[OrderResource]:
        raise NotImplementedError

    @abstractmethod
    def create_resource(self, booking_id: int) -> int:
        """Create a new order resource. Returns its id."""
        raise NotImplementedError

    @abstractmethod
    def get_resource(self, resource_id: int) -> OrderResource:
        raise NotImplementedError

    @abstractmethod
    def add_item(self, resource_id: int, service_id: int, quantity: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def assign_handler(
        self,
        resource_id: int,
        handler_id: int,
        scheduled_time: datetime,
        note: str | None = None,
    ) -> None:
        raise NotImplementedError
