"""
Tests for the httpx backend adapters against a mocked transport.
"""

from __future__ import annotations

import json
from datetime import datetime

import httpx
import pytest

from bookingflow.application.exceptions import BackendError, ResourceConflict, TransientResourceStateError
from bookingflow.application.use_cases.order_workflow import OrderWorkflowOrchestrator
from bookingflow.domain.entities.order import OrderRequest, OrderStatus
from bookingflow.domain.entities.workflow_state import WorkflowPhase
from bookingflow.domain.entities.reservation import Attachment, DateRange
from bookingflow.infrastructure.backend.http_client import BackendHttpClient
from bookingflow.infrastructure.backend.order_api import HttpOrderBackend
from bookingflow.infrastructure.backend.reservation_api import HttpReservationBackend


def _client(handler, token: str | None = "secret-token") -> BackendHttpClient:
    return BackendHttpClient(
        "http://backend.test/api",
        token_provider=lambda: token,
        transport=httpx.MockTransport(handler),
    )


def _ok(data, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"responseCode": "S0000", "message": "Success", "data": data})


def _error(code: str, message: str, status_code: int = 400) -> httpx.Response:
    return httpx.Response(status_code, json={"responseCode": code, "message": message, "data": None})


def test_create_resource_posts_booking_and_reads_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return _ok({"id": 42, "status": "PENDING"})

    resource_id = HttpOrderBackend(_client(handler)).create_resource(7)

    assert resource_id == 42
    assert seen == {
        "method": "POST",
        "path": "/api/orders/cart",
        "auth": "Bearer secret-token",
        "body": {"bookingId": 7},
    }


def test_no_token_sends_no_authorization_header():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return _ok({"id": 1, "status": "PENDING", "items": []})

    HttpOrderBackend(_client(handler, token=None)).get_resource(1)


def test_get_resource_parses_items_and_status_spelling():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/orders/5"
        return _ok(
            {
                "id": 5,
                "bookingId": 7,
                "status": "Pending",
                "orderItems": [{"id": 1, "serviceId": 3, "quantity": 2}, {"id": 2, "service": {"id": 9}}],
            }
        )

    order = HttpOrderBackend(_client(handler)).get_resource(5)

    assert order.status is OrderStatus.PENDING
    assert order.booking_id == 7
    assert order.has_service(3) and order.has_service(9)
    assert order.items[0].quantity == 2


def test_unknown_status_is_contract_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return _ok({"id": 5, "status": "ARCHIVED", "items": []})

    with pytest.raises(BackendError) as excinfo:
        HttpOrderBackend(_client(handler)).get_resource(5)
    assert not isinstance(excinfo.value, TransientResourceStateError)


def test_payment_and_failed_statuses_parse_as_locked():
    statuses = iter(["PENDING_PAYMENT", "Failed"])

    def handler(request: httpx.Request) -> httpx.Response:
        return _ok({"id": 5, "status": next(statuses), "items": []})

    backend = HttpOrderBackend(_client(handler))

    unpaid = backend.get_resource(5)
    failed = backend.get_resource(5)
    assert unpaid.status is OrderStatus.PENDING_PAYMENT
    assert failed.status is OrderStatus.FAILED
    assert not unpaid.status.is_modifiable and not failed.status.is_modifiable


def test_workflow_replaces_order_that_moved_to_payment():
    """The cached order went to PENDING_PAYMENT after CREATE: one forced create, then ASSIGN."""
    created: list[int] = []
    items: dict[int, list] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/api/orders/my-orders":
            return _ok([])
        if path == "/api/orders/cart":
            created.append(len(created) + 1)
            return _ok({"id": created[-1], "status": "PENDING"})
        resource_id = int(path.split("/")[3])
        if path.endswith("/items"):
            items.setdefault(resource_id, []).append(json.loads(request.content))
            return _ok(None)
        status = "PENDING_PAYMENT" if resource_id == 1 else "PENDING"
        return _ok({"id": resource_id, "status": status, "items": items.get(resource_id, [])})

    orchestrator = OrderWorkflowOrchestrator(HttpOrderBackend(_client(handler)), sleep=lambda seconds: None)
    orchestrator.open(
        OrderRequest(booking_id=7, service_id=3, handler_id=11, scheduled_time=datetime(2030, 1, 15, 9, 30))
    )
    orchestrator.create_resource()

    state = orchestrator.add_item()

    assert state.phase is WorkflowPhase.ASSIGN
    assert state.resource_id == 2
    assert created == [1, 2]
    assert list(items) == [2]


def test_list_orders_accepts_list_or_items_wrapper():
    payloads = [
        [{"id": 1, "status": "PENDING"}, {"id": 2, "status": "CONFIRMED"}],
        {"items": [{"id": 3, "status": "CART"}]},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["bookingId"] == "7"
        return _ok(payloads.pop(0))

    backend = HttpOrderBackend(_client(handler))

    assert [o.id for o in backend.list_orders(7)] == [1, 2]
    assert [o.status for o in backend.list_orders(7)] == [OrderStatus.PENDING]


def test_add_item_not_modifiable_message_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"serviceId": 3, "quantity": 1}
        return httpx.Response(409, json={"message": "Order cannot be modified"})

    with pytest.raises(TransientResourceStateError) as excinfo:
        HttpOrderBackend(_client(handler)).add_item(5, 3, 1)

    assert excinfo.value.conflict is ResourceConflict.NOT_MODIFIABLE
    assert excinfo.value.status_code == 409


def test_not_permitted_code_in_success_envelope_is_transient():
    def handler(request: httpx.Request) -> httpx.Response:
        return _error("E0010", "operation not permitted", status_code=200)

    with pytest.raises(TransientResourceStateError) as excinfo:
        HttpOrderBackend(_client(handler)).add_item(5, 3, 1)

    assert excinfo.value.conflict is ResourceConflict.NOT_MODIFIABLE
    assert excinfo.value.message == "Operation not permitted."


def test_assign_item_not_found_is_transient():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return _error("E0002", "Order item not found")

    with pytest.raises(TransientResourceStateError) as excinfo:
        HttpOrderBackend(_client(handler)).assign_handler(5, 11, datetime(2030, 1, 15, 9, 30), "Room 204")

    assert excinfo.value.conflict is ResourceConflict.ITEM_NOT_FOUND
    assert seen["path"] == "/api/orders/5/assign"
    assert seen["body"] == {"assignedStaffId": 11, "serviceTime": "2030-01-15T09:30:00", "note": "Room 204"}


def test_other_errors_keep_friendly_message_and_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return _error("E0004", "JWT expired at 12:00", status_code=401)

    with pytest.raises(BackendError) as excinfo:
        HttpOrderBackend(_client(handler)).add_item(5, 3, 1)

    error = excinfo.value
    assert not isinstance(error, TransientResourceStateError)
    assert error.message == "Your session has expired."
    assert error.detail == "JWT expired at 12:00"
    assert error.response_code == "E0004"


def test_transport_failure_is_backend_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(BackendError) as excinfo:
        HttpOrderBackend(_client(handler)).create_resource(7)

    assert excinfo.value.status_code is None


def test_create_reservation_reads_booking_id():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/api/bookings"
        assert body["roomId"] == 12
        assert body["checkinDate"] == "2030-06-02T14:00:00"
        assert body["numGuests"] == 2
        return _ok({"bookingId": 88})

    backend = HttpReservationBackend(_client(handler))
    date_range = DateRange(check_in=datetime(2030, 6, 2, 14), check_out=datetime(2030, 7, 2, 12))

    assert backend.create_reservation(12, date_range, num_guests=2) == 88


def test_enrollment_upload_is_one_multipart_call():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return _ok(None)

    attachments = [
        Attachment(filename=f"0{i}-face_front.jpg", content=b"\xff\xd8face", slot_id="face_front") for i in range(3)
    ]
    HttpReservationBackend(_client(handler)).submit_enrollment(88, attachments)

    assert len(requests) == 1
    request = requests[0]
    body = request.read()
    assert request.url.path == "/api/bookings/88/face"
    assert request.headers["Content-Type"].startswith("multipart/form-data")
    assert body.count(b'name="images"') == 3


def test_enrollment_status_404_means_not_registered():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/88/face"):
            return _error("E0002", "Face data not found", status_code=404)
        return _ok({"registered": True, "imageCount": 5})

    backend = HttpReservationBackend(_client(handler))

    assert backend.get_enrollment_status(88).registered is False
    status = backend.get_enrollment_status(89)
    assert status.registered is True
    assert status.data["imageCount"] == 5


def test_delete_enrollment_reports_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        if request.url.path.endswith("/88/face"):
            return _ok(None)
        return _error("E0008", "cannot delete", status_code=400)

    backend = HttpReservationBackend(_client(handler))

    assert backend.delete_enrollment(88) is True
    assert backend.delete_enrollment(89) is False
