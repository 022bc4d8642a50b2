import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from bookingflow.api.schemas import (
    EnrollmentResponseSchema, EnrollmentStatusSchema, FlowSchema,
    OpenFlowRequestSchema, OrderRequestSchema, OrderRunResponseSchema,
    OrderStateSchema, ReservationRequestSchema, ReservationResponseSchema, SlotSchema,
)
from bookingflow.application.exceptions import (
    BackendError, BookingFlowError, CaptureOrderError, DeviceError,
    PhaseInFlightError, UnrecoverableBackendError, ValidationError,
)
from bookingflow.application.use_cases.booking_flow import GuidedBookingFlow
from bookingflow.domain.entities.order import OrderRequest
from bookingflow.domain.entities.reservation import DateRange, ReservationRequest
from bookingflow.domain.entities.workflow_state import WorkflowState
from bookingflow.infrastructure.store.flow_store import MemoryFlowStore
from bookingflow.wiring.dependencies import get_flow_store, new_flow

router = APIRouter(prefix="/flows")
logger = logging.getLogger(__name__)


def _http_error(e: BookingFlowError) -> HTTPException:
    if isinstance(e, (PhaseInFlightError, CaptureOrderError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, DeviceError):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, (UnrecoverableBackendError, BackendError)):
        return HTTPException(status_code=502, detail=str(e))
    logger.error("Unhandled workflow error", extra={"error": str(e)})
    return HTTPException(status_code=500, detail=str(e))


def _get_flow(flow_id: str, store: MemoryFlowStore) -> GuidedBookingFlow:
    flow = store.get(flow_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


def _order_state(state: WorkflowState) -> OrderStateSchema:
    return OrderStateSchema(
        phase=state.phase.value,
        resource_id=state.resource_id,
        completed=state.completed,
        last_error=state.last_error,
    )


@router.post("", response_model=FlowSchema, status_code=201)
def open_flow(
    req: OpenFlowRequestSchema | None = None,
    store: MemoryFlowStore = Depends(get_flow_store),
):
    flow = new_flow()
    try:
        if req is not None and req.reservation_id is not None:
            flow.use_reservation(req.reservation_id)
    except BookingFlowError as e:
        raise _http_error(e)
    flow_id = store.add(flow)
    return FlowSchema(
        flow_id=flow_id,
        reservation_id=flow.reservation_id,
        enrolled=flow.enrolled,
        needs_capture=flow.needs_capture,
    )


@router.post("/{flow_id}/reservation", response_model=ReservationResponseSchema, status_code=201)
def create_reservation(
    flow_id: str,
    req: ReservationRequestSchema,
    store: MemoryFlowStore = Depends(get_flow_store),
):
    flow = _get_flow(flow_id, store)
    date_range = None
    if req.check_in is not None and req.check_out is not None:
        date_range = DateRange(check_in=req.check_in, check_out=req.check_out)
    try:
        reservation_id = flow.reserve(
            ReservationRequest(room_id=req.room_id, date_range=date_range, num_guests=req.num_guests)
        )
    except BookingFlowError as e:
        raise _http_error(e)
    return ReservationResponseSchema(
        reservation_id=reservation_id,
        enrolled=flow.enrolled,
        needs_capture=flow.needs_capture,
    )


@router.get("/{flow_id}/enrollment", response_model=EnrollmentStatusSchema)
def get_enrollment(flow_id: str, store: MemoryFlowStore = Depends(get_flow_store)):
    flow = _get_flow(flow_id, store)
    session = flow.session
    slots = [
        SlotSchema(id=slot.id, label=slot.label, kind=slot.kind.value, filled=slot.is_filled)
        for slot in (session.slots if session is not None else [])
    ]
    return EnrollmentStatusSchema(
        reservation_id=flow.reservation_id,
        enrolled=flow.enrolled,
        needs_capture=flow.needs_capture,
        slots=slots,
    )


@router.post("/{flow_id}/enrollment", response_model=EnrollmentResponseSchema, status_code=201)
def submit_enrollment(
    flow_id: str,
    images: list[UploadFile] = File(...),
    recapture: bool = False,
    store: MemoryFlowStore = Depends(get_flow_store),
):
    """Images fill the capture slots in order: faces first, then the ID card sides."""
    flow = _get_flow(flow_id, store)
    try:
        sequencer = flow.restart_capture()
        for upload in images:
            sequencer.capture(upload.file.read())
        result = flow.submit_enrollment(recapture=recapture)
    except BookingFlowError as e:
        raise _http_error(e)
    return EnrollmentResponseSchema(
        reservation_id=result.reservation_id,
        attachment_count=result.attachment_count,
        padded_count=result.padded_count,
    )


@router.post("/{flow_id}/order", response_model=OrderStateSchema, status_code=201)
def open_order(
    flow_id: str,
    req: OrderRequestSchema,
    store: MemoryFlowStore = Depends(get_flow_store),
):
    flow = _get_flow(flow_id, store)
    booking_id = req.booking_id if req.booking_id is not None else flow.reservation_id
    try:
        state = flow.start_order(
            OrderRequest(
                booking_id=booking_id,
                service_id=req.service_id,
                handler_id=req.handler_id,
                scheduled_time=req.scheduled_time,
                quantity=req.quantity,
                note=req.note,
            )
        )
    except BookingFlowError as e:
        raise _http_error(e)
    return _order_state(state)


@router.get("/{flow_id}/order", response_model=OrderStateSchema)
def get_order(flow_id: str, store: MemoryFlowStore = Depends(get_flow_store)):
    flow = _get_flow(flow_id, store)
    state = flow.workflow_state
    if state is None:
        raise HTTPException(status_code=404, detail="No order workflow is open")
    return _order_state(state)


@router.post("/{flow_id}/order/advance", response_model=OrderStateSchema)
def advance_order(flow_id: str, store: MemoryFlowStore = Depends(get_flow_store)):
    flow = _get_flow(flow_id, store)
    try:
        state = flow.advance_order()
    except BookingFlowError as e:
        raise _http_error(e)
    return _order_state(state)


@router.post("/{flow_id}/order/run", response_model=OrderRunResponseSchema)
def run_order(flow_id: str, store: MemoryFlowStore = Depends(get_flow_store)):
    flow = _get_flow(flow_id, store)
    try:
        result = flow.run_order()
    except BookingFlowError as e:
        raise _http_error(e)
    return OrderRunResponseSchema(
        action=result.action,
        phase=result.phase.value if result.phase is not None else None,
        resource_id=result.resource_id,
        error=result.error,
    )


@router.delete("/{flow_id}", status_code=204)
def dismiss_flow(flow_id: str, store: MemoryFlowStore = Depends(get_flow_store)):
    flow = store.discard(flow_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    flow.dismiss()
