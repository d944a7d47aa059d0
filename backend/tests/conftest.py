import itertools
from copy import deepcopy
from urllib.parse import parse_qsl

import httpx
import pytest

from pusarapay.core.config import Settings
from pusarapay.core.errors import StorageError
from pusarapay.services.payment_store import ID_KEY
from pusarapay.services.reservation_client import ReservationClient
from pusarapay.services.toyyibpay import ToyyibPayClient


class InMemoryPaymentStore:
    """PaymentStore fake with the same matching rules as the Firestore one."""

    def __init__(self):
        self.records = {}
        self.calls = []
        # operation names ("insert", "update", "find") that raise StorageError
        self.fail_on = set()
        self._ids = itertools.count(1)

    def _check(self, operation):
        self.calls.append(operation)
        if operation in self.fail_on:
            raise StorageError(f"{operation} unavailable")

    def _matching(self, key, value):
        if key == ID_KEY:
            return [value] if value in self.records else []
        return [record_id for record_id, record in self.records.items() if record.get(key) == value]

    async def insert(self, record):
        self._check("insert")
        record_id = f"pay_{next(self._ids)}"
        self.records[record_id] = deepcopy(record)
        return record_id

    async def update_by_key(self, key, value, patch):
        self._check("update")
        matched = self._matching(key, value)
        for record_id in matched:
            self.records[record_id].update(deepcopy(patch))
        return len(matched)

    async def find_by_key(self, key, value):
        self._check("find")
        return [{**deepcopy(self.records[record_id]), ID_KEY: record_id} for record_id in self._matching(key, value)]


class ToyyibPayStub:
    """httpx.MockTransport handler standing in for the createBill endpoint."""

    def __init__(self, bill_code="BILL001"):
        self.bill_code = bill_code
        self.requests = []
        self.response = None
        self.error = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        return httpx.Response(200, json=[{"BillCode": self.bill_code}])

    def form(self, index=-1):
        return dict(parse_qsl(self.requests[index].content.decode()))


class ReservationBackendStub:
    """httpx.MockTransport handler standing in for GET /api/reservations/{id}."""

    def __init__(self, known_ids=(42,)):
        self.known_ids = set(known_ids)
        self.requests = []
        self.response = None
        self.error = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.response is not None:
            return self.response
        reservation_id = int(request.url.path.rsplit("/", 1)[-1])
        if reservation_id not in self.known_ids:
            return httpx.Response(404, json={"success": False, "message": "Reservation not found."})
        return httpx.Response(
            200,
            json={"success": True, "reservation": {"reservation_id": reservation_id, "customer_name": "A"}},
        )


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        ENVIRONMENT="development",
        BACKEND_URL="https://api.pusara.test/",
        TOYYIBPAY_API_KEY="secret-key",
        TOYYIBPAY_CATEGORY_CODE="cat01",
        TOYYIBPAY_BASE_URL=None,
        LEGACY_UPDATE_URL="",
        LEGACY_INTERNAL_KEY="",
        RESERVATION_BASE_URL="",
        RESERVATION_INTERNAL_KEY="",
    )


@pytest.fixture
def store():
    return InMemoryPaymentStore()


@pytest.fixture
def toyyibpay_stub():
    return ToyyibPayStub()


@pytest.fixture
def provider(test_settings, toyyibpay_stub):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(toyyibpay_stub))
    return ToyyibPayClient(test_settings, http_client=http_client)


@pytest.fixture
def valid_request():
    return {
        "reservation_id": 42,
        "name": "A",
        "email": "a@b.com",
        "phone": "0123456789",
        "amount": "50.00",
    }


@pytest.fixture
def reservation_stub():
    return ReservationBackendStub()


@pytest.fixture
def reservations(test_settings, reservation_stub):
    test_settings.RESERVATION_BASE_URL = "http://sql.pusara.test"
    test_settings.RESERVATION_INTERNAL_KEY = "internal-456"
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(reservation_stub))
    return ReservationClient(test_settings, http_client=http_client)
