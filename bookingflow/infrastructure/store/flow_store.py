from __future__ import annotations

import logging
import threading
import uuid

from bookingflow.application.use_cases.booking_flow import GuidedBookingFlow


class MemoryFlowStore:
    """Live guided flows by opaque id. Nothing survives a restart."""

    def __init__(self) -> None:
        self._flows: dict[str, GuidedBookingFlow] = {}
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def add(self, flow: GuidedBookingFlow) -> str:
        flow_id = uuid.uuid4().hex
        with self._lock:
            self._flows[flow_id] = flow
        self._logger.info("Flow opened", extra={"flow_id": flow_id})
        return flow_id

    def get(self, flow_id: str) -> GuidedBookingFlow | None:
        with self._lock:
            return self._flows.get(flow_id)

    def discard(self, flow_id: str) -> GuidedBookingFlow | None:
        with self._lock:
            flow = self._flows.pop(flow_id, None)
        if flow is not None:
            self._logger.info("Flow discarded", extra={"flow_id": flow_id})
        return flow
