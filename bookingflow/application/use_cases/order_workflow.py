from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from bookingflow.application.exceptions import (
    BackendError,
    PhaseInFlightError,
    ResourceConflict,
    TransientResourceStateError,
    UnrecoverableBackendError,
    ValidationError,
    WorkflowDismissedError,
)
from bookingflow.application.ports.order_backend import OrderBackendPort
from bookingflow.domain.entities.order import OrderRequest, OrderResource
from bookingflow.domain.entities.workflow_state import WorkflowPhase, WorkflowState


@dataclass(frozen=True)
class WorkflowResult:
    action: str  # "confirmed", "failed", "dismissed"
    phase: WorkflowPhase | None
    resource_id: int | None
    error: str | None = None


def validate_order_request(request: OrderRequest) -> None:
    if request.booking_id is None:
        raise ValidationError("Please choose a booking")
    if request.service_id is None:
        raise ValidationError("Please choose a service")
    if request.handler_id is None:
        raise ValidationError("Please choose a staff member")
    if request.scheduled_time is None:
        raise ValidationError("Please choose the service date and time")
    if request.quantity < 1:
        raise ValidationError("Quantity must be at least 1")


class OrderWorkflowOrchestrator:
    """
    Drives one order through CREATE -> ADD_ITEM -> ASSIGN -> CONFIRM.

    The order lives on the backend and can change status at any time, so every
    step that depends on an earlier read re-reads it first. Each recovery branch
    retries exactly once; when that is spent the failure is surfaced and the
    workflow stays at the last phase that is still valid.
    """

    def __init__(
        self,
        backend: OrderBackendPort,
        consistency_delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._backend = backend
        self._consistency_delay = consistency_delay_seconds
        self._sleep = sleep
        self._state: WorkflowState | None = None
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> WorkflowState | None:
        return self._state

    def open(self, request: OrderRequest) -> WorkflowState:
        validate_order_request(request)
        self._state = WorkflowState(request=request)
        self._logger.info("Order workflow opened", extra={"booking_id": request.booking_id})
        return self._state

    def dismiss(self) -> None:
        """Drop the local state. Nothing already created on the backend is touched."""
        state = self._state
        if state is None:
            return
        state.dismissed = True
        self._state = None
        self._logger.info(
            "Order workflow dismissed",
            extra={"phase": state.phase.value, "resource_id": state.resource_id},
        )

    def run(self) -> WorkflowResult:
        state = self._require_state()
        try:
            while not state.completed:
                self.advance()
        except WorkflowDismissedError:
            return WorkflowResult(action="dismissed", phase=None, resource_id=None)
        except UnrecoverableBackendError as e:
            return WorkflowResult(
                action="failed",
                phase=state.phase,
                resource_id=state.resource_id,
                error=e.message,
            )
        return WorkflowResult(action="confirmed", phase=state.phase, resource_id=state.resource_id)

    def advance(self) -> WorkflowState:
        state = self._require_state()
        if state.completed:
            return state
        handlers = {
            WorkflowPhase.CREATE: self.create_resource,
            WorkflowPhase.ADD_ITEM: self.add_item,
            WorkflowPhase.ASSIGN: self.assign,
            WorkflowPhase.CONFIRM: self.confirm,
        }
        return handlers[state.phase]()

    # Phases

    def create_resource(self) -> WorkflowState:
        with self._submitting(WorkflowPhase.CREATE) as state:
            booking_id = state.request.booking_id
            try:
                resource_id = self._find_reusable(state)
                if resource_id is None:
                    resource_id = self._call(state, self._backend.create_resource, booking_id)
                    self._logger.info(
                        "Order resource created",
                        extra={"booking_id": booking_id, "resource_id": resource_id},
                    )
            except BackendError as e:
                raise self._fail(state, WorkflowPhase.CREATE, e.message) from e

            state.resource_id = resource_id
            self._transition(state, WorkflowPhase.ADD_ITEM)
            return state

    def add_item(self) -> WorkflowState:
        with self._submitting(WorkflowPhase.ADD_ITEM) as state:
            state.retry_count[WorkflowPhase.ADD_ITEM] = 0
            try:
                if self._is_stale(state):
                    self._logger.warning(
                        "Cached order is no longer modifiable, creating a new one",
                        extra={"resource_id": state.resource_id},
                    )
                    state.retry_count[WorkflowPhase.ADD_ITEM] += 1
                    self._force_new_resource(state)
                self._add(state)
            except TransientResourceStateError as e:
                if e.conflict is not ResourceConflict.NOT_MODIFIABLE or state.retry_count[WorkflowPhase.ADD_ITEM] >= 1:
                    state.resource_id = None
                    raise self._fail(state, WorkflowPhase.CREATE, e.message) from e
                self._logger.warning(
                    "Order cannot be modified, retrying on a new order",
                    extra={"resource_id": state.resource_id, "error": e.message},
                )
                state.retry_count[WorkflowPhase.ADD_ITEM] += 1
                try:
                    self._force_new_resource(state)
                    self._add(state)
                except BackendError as retry_error:
                    state.resource_id = None
                    raise self._fail(state, WorkflowPhase.CREATE, retry_error.message) from retry_error
            except BackendError as e:
                state.resource_id = None
                raise self._fail(state, WorkflowPhase.CREATE, e.message) from e

            self._transition(state, WorkflowPhase.ASSIGN)
            return state

    def assign(self) -> WorkflowState:
        with self._submitting(WorkflowPhase.ASSIGN) as state:
            state.retry_count[WorkflowPhase.ASSIGN] = 0
            try:
                self._verify_item_present(state)
                self._assign(state)
            except TransientResourceStateError as e:
                if e.conflict is ResourceConflict.NOT_MODIFIABLE:
                    # ADD_ITEM re-reads the order and replaces it when locked.
                    raise self._fail(state, WorkflowPhase.ADD_ITEM, e.message) from e
                self._recover_missing_item(state, e)
            except BackendError as e:
                raise self._fail(state, WorkflowPhase.ASSIGN, e.message) from e

            self._transition(state, WorkflowPhase.CONFIRM)
            return state

    def confirm(self) -> WorkflowState:
        with self._submitting(WorkflowPhase.CONFIRM) as state:
            state.completed = True
            state.last_error = None
            self._logger.info(
                "Order workflow confirmed",
                extra={"resource_id": state.resource_id, "booking_id": state.request.booking_id},
            )
            return state

    # Steps

    def _find_reusable(self, state: WorkflowState) -> int | None:
        booking_id = state.request.booking_id
        try:
            orders = self._call(state, self._backend.list_orders, booking_id)
            candidate = next((order for order in orders if order.status.is_modifiable), None)
            if candidate is None:
                return None
            verified: OrderResource = self._call(state, self._backend.get_resource, candidate.id)
        except BackendError as e:
            self._logger.warning(
                "Order lookup failed, creating a new order",
                extra={"booking_id": booking_id, "error": e.message},
            )
            return None

        if not verified.status.is_modifiable:
            self._logger.info(
                "Existing order changed status before reuse",
                extra={"resource_id": verified.id, "status": verified.status.value},
            )
            return None
        self._logger.info("Reusing pending order", extra={"resource_id": verified.id, "booking_id": booking_id})
        return verified.id

    def _is_stale(self, state: WorkflowState) -> bool:
        if state.resource_id is None:
            return True
        try:
            current: OrderResource = self._call(state, self._backend.get_resource, state.resource_id)
        except TransientResourceStateError:
            return True
        except BackendError as e:
            if e.status_code == 404:
                return True
            raise
        return not current.status.is_modifiable

    def _force_new_resource(self, state: WorkflowState) -> None:
        state.resource_id = self._call(state, self._backend.create_resource, state.request.booking_id)
        self._logger.info("Forced new order resource", extra={"resource_id": state.resource_id})

    def _add(self, state: WorkflowState) -> None:
        request = state.request
        self._call(state, self._backend.add_item, state.resource_id, request.service_id, request.quantity)
        self._logger.info(
            "Service item added",
            extra={"resource_id": state.resource_id, "service_id": request.service_id},
        )

    def _verify_item_present(self, state: WorkflowState) -> None:
        # The backend is eventually consistent after add_item.
        self._sleep(self._consistency_delay)
        resource: OrderResource = self._call(state, self._backend.get_resource, state.resource_id)
        if not resource.status.is_modifiable:
            raise TransientResourceStateError(
                ResourceConflict.NOT_MODIFIABLE,
                f"Order {resource.id} is {resource.status.value} and can no longer be changed",
            )
        if not resource.has_service(state.request.service_id):
            raise TransientResourceStateError(
                ResourceConflict.ITEM_NOT_FOUND,
                "The service item is not on the order yet",
            )

    def _assign(self, state: WorkflowState) -> None:
        request = state.request
        self._call(
            state,
            self._backend.assign_handler,
            state.resource_id,
            request.handler_id,
            request.scheduled_time,
            request.note,
        )
        self._logger.info(
            "Handler assigned",
            extra={"resource_id": state.resource_id, "handler_id": request.handler_id},
        )

    def _recover_missing_item(self, state: WorkflowState, error: TransientResourceStateError) -> None:
        if state.retry_count[WorkflowPhase.ASSIGN] >= 1:
            raise self._fail(state, WorkflowPhase.ADD_ITEM, error.message) from error
        state.retry_count[WorkflowPhase.ASSIGN] += 1
        self._logger.warning(
            "Service item missing at assignment, adding it again",
            extra={"resource_id": state.resource_id, "error": error.message},
        )
        try:
            self._add(state)
            self._verify_item_present(state)
            self._assign(state)
        except BackendError as retry_error:
            raise self._fail(state, WorkflowPhase.ADD_ITEM, retry_error.message) from retry_error

    # Plumbing

    def _require_state(self) -> WorkflowState:
        if self._state is None:
            raise ValidationError("No order workflow is open")
        return self._state

    @contextmanager
    def _submitting(self, phase: WorkflowPhase) -> Iterator[WorkflowState]:
        with self._lock:
            state = self._require_state()
            if phase in state.submitting:
                raise PhaseInFlightError(f"{phase.value} is already being submitted")
            if state.completed:
                raise ValidationError("Order workflow is already confirmed")
            if state.phase is not phase:
                raise ValidationError(f"Order workflow is at {state.phase.value}, not {phase.value}")
            state.submitting.add(phase)
        try:
            yield state
        finally:
            with self._lock:
                state.submitting.discard(phase)

    def _call(self, state: WorkflowState, operation: Callable[..., Any], *args: Any) -> Any:
        if state.dismissed:
            raise WorkflowDismissedError("Order workflow was dismissed")
        return operation(*args)

    def _transition(self, state: WorkflowState, phase: WorkflowPhase) -> None:
        self._logger.info(
            "Order workflow phase changed",
            extra={"phase": phase.value, "previous_phase": state.phase.value, "resource_id": state.resource_id},
        )
        state.phase = phase
        state.last_error = None

    def _fail(self, state: WorkflowState, phase: WorkflowPhase, message: str) -> UnrecoverableBackendError:
        state.phase = phase
        state.last_error = message
        self._logger.error(
            "Order workflow failed",
            extra={"phase": phase.value, "resource_id": state.resource_id, "error": message},
        )
        return UnrecoverableBackendError(message, phase=phase.value)
