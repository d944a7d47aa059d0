import httpx
import pytest
from fastapi.testclient import TestClient

from main import app
from pusarapay.core.config import settings
from pusarapay.core.dependencies import (
    get_mirror_dispatcher,
    get_reservation_client,
    get_store,
    get_toyyibpay_client,
)


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def client(store, provider, reservations, dispatched):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_toyyibpay_client] = lambda: provider
    app.dependency_overrides[get_reservation_client] = lambda: reservations
    app.dependency_overrides[get_mirror_dispatcher] = lambda: dispatched.append
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, body):
    return client.post("/api/payment/create", json=body)


# ----------------------------
# system routes
# ----------------------------
def test_root_and_health(client):
    root = client.get("/")
    assert root.status_code == 200
    assert "running" in root.text
    assert client.get("/health").json() == {"status": "ok"}


# ----------------------------
# end to end
# ----------------------------
def test_create_then_success_callback(client, store, dispatched, valid_request):
    """
    Test case 1: bill creation followed by a paid callback ends in status success.
    """
    valid_request["amount"] = 50.00
    response = create(client, valid_request)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "billCode": "BILL001",
        "paymentUrl": "https://dev.toyyibpay.com/BILL001",
    }

    ack = client.post(
        "/api/payment/callback?reservation_id=42",
        data={"billCode": "BILL001", "statusId": "1", "transaction_id": "TXN1"},
    )
    assert ack.status_code == 200
    assert ack.text == "RECEIVEOK"
    assert ack.headers["content-type"].startswith("text/plain")

    (record,) = store.records.values()
    assert record["status"] == "success"
    assert record["transaction_id"] == "TXN1"
    assert dispatched == ["BILL001"]

    status = client.get("/api/payment/status/42").json()
    assert status["status"] == "success"
    assert status["bill_code"] == "BILL001"
    assert status["amount"] == "50.00"
    assert client.get("/api/payment/bill/BILL001").json()["status"] == "success"


def test_callback_for_unknown_bill_still_acknowledged(client, store, valid_request):
    create(client, valid_request)
    before = {key: dict(value) for key, value in store.records.items()}

    ack = client.post("/api/payment/callback", data={"billcode": "BILL002", "status_id": "1"})

    assert ack.text == "RECEIVEOK"
    assert store.records == before


def test_pending_then_paid_callbacks(client, store, valid_request):
    create(client, valid_request)

    client.post("/api/payment/callback", data={"billcode": "BILL001", "status_id": "3"})
    client.post("/api/payment/callback", data={"billcode": "BILL001", "status_id": "1"})

    (record,) = store.records.values()
    assert record["status"] == "success"


def test_callback_reads_query_string_and_multipart(client, store, valid_request):
    create(client, valid_request)

    ack = client.post("/api/payment/callback?billcode=BILL001&status_id=2")
    assert ack.text == "RECEIVEOK"
    assert next(iter(store.records.values()))["status"] == "failed"

    ack = client.post(
        "/api/payment/callback?status_id=2",
        files={"billcode": (None, "BILL001"), "status_id": (None, "1"), "refno": (None, "TP99")},
    )
    assert ack.text == "RECEIVEOK"
    record = next(iter(store.records.values()))
    assert record["status"] == "success"
    assert record["transaction_id"] == "TP99"


def test_callback_acknowledged_on_storage_failure_and_garbage(client, store, dispatched):
    store.fail_on.add("update")

    assert client.post("/api/payment/callback", data={"billcode": "BILL001", "status_id": "1"}).text == "RECEIVEOK"
    assert client.post("/api/payment/callback", content=b"\x00\xff", headers={"content-type": "application/json"}).text == "RECEIVEOK"
    assert client.post("/api/payment/callback").text == "RECEIVEOK"
    assert dispatched == []


def test_return_reconciles_and_echoes(client, store, valid_request):
    create(client, valid_request)

    response = client.get(
        "/api/payment/return",
        params={"status_id": "1", "billcode": "BILL001", "order_id": "42", "msg": "ok", "transaction_id": "TP1"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "statusId": "1",
        "billCode": "BILL001",
        "message": "ok",
        "transactionId": "TP1",
    }
    (record,) = store.records.values()
    assert record["status"] == "success"
    assert record["channel"] == "redirect"


def test_return_without_parameters_is_still_200(client):
    response = client.get("/api/payment/return")

    assert response.status_code == 200
    assert response.json()["billCode"] is None


# ----------------------------
# error mapping
# ----------------------------
def test_create_validation_error_is_400(client, store):
    response = create(client, {"reservation_id": 42, "name": "A"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "validation_error"
    assert body["fields"] == ["email", "phone", "amount"]
    assert store.calls == []


def test_create_provider_error_is_502(client, store, toyyibpay_stub, valid_request):
    toyyibpay_stub.response = httpx.Response(200, json=[{"msg": "invalid category"}])

    response = create(client, valid_request)

    assert response.status_code == 502
    assert response.json()["error"] == "provider_error"
    (record,) = store.records.values()
    assert record["bill_code"] is None


def test_create_storage_error_is_503(client, store, toyyibpay_stub, valid_request):
    store.fail_on.add("insert")

    response = create(client, valid_request)

    assert response.status_code == 503
    assert response.json()["error"] == "storage_error"
    assert toyyibpay_stub.requests == []


# ----------------------------
# status queries
# ----------------------------
def test_status_query_errors(client, store):
    assert client.get("/api/payment/status/0").status_code == 400
    assert client.get("/api/payment/status/99").status_code == 404
    assert client.get("/api/payment/bill/NOPE").status_code == 404

    store.fail_on.add("find")
    assert client.get("/api/payment/status/42").status_code == 503


def test_app_title_comes_from_settings():
    assert app.title == f"{settings.PROJECT_NAME} API"


# ----------------------------
# unreadable callback bodies
# ----------------------------
def test_multipart_callback_without_boundary_uses_query_string(client, store, valid_request):
    """
    Test case 2: a multipart body that cannot be parsed still gets RECEIVEOK and
    the notification carried by the query string is applied.
    """
    create(client, valid_request)

    ack = client.post(
        "/api/payment/callback?billcode=BILL001&status_id=1",
        content=b"garbage",
        headers={"content-type": "multipart/form-data"},
    )

    assert ack.status_code == 200
    assert ack.text == "RECEIVEOK"
    (record,) = store.records.values()
    assert record["status"] == "success"


def test_truncated_multipart_callback_is_acknowledged(client):
    ack = client.post(
        "/api/payment/callback?billcode=BILL001&status_id=1",
        content=b"--xyz\r\nContent-Disposition: form-data; name=\"billcode\"\r\n\r\nBILL",
        headers={"content-type": "multipart/form-data; boundary=xyz"},
    )

    assert ack.status_code == 200
    assert ack.text == "RECEIVEOK"


# ----------------------------
# create body formats and reservation lookup
# ----------------------------
def test_create_accepts_form_body(client, store, valid_request):
    response = client.post("/api/payment/create", data=valid_request)

    assert response.status_code == 200
    assert response.json()["billCode"] == "BILL001"
    (record,) = store.records.values()
    assert record["reservation_id"] == 42
    assert record["amount"] == "50.00"


@pytest.mark.parametrize("content", [b"not json", b"[1, 2]", b""])
def test_create_rejects_unreadable_body(client, store, content):
    response = client.post("/api/payment/create", content=content, headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert store.calls == []


def test_create_for_unknown_reservation_is_404(client, store, toyyibpay_stub, valid_request):
    valid_request["reservation_id"] = 77

    response = create(client, valid_request)

    assert response.status_code == 404
    assert response.json()["error"] == "reservation_not_found"
    assert store.calls == []
    assert toyyibpay_stub.requests == []


def test_create_with_reservation_backend_down_is_503(client, store, reservation_stub, valid_request):
    reservation_stub.error = httpx.ConnectError("connection refused")

    response = create(client, valid_request)

    assert response.status_code == 503
    assert response.json()["error"] == "reservation_service_error"
    assert store.calls == []
