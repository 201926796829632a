import copy
import sqlite3

import pytest
from fastapi.testclient import TestClient

import hosteldesk.main as main
import hosteldesk.policy as policy
from hosteldesk.auth import create_session
from hosteldesk.db import get_db, init_db
from hosteldesk.errors import BackendError, ErrorKind
from hosteldesk.main import app, get_backend_factory


class FakeBackend:
    """Stands in for BackendClient; answers from a route table and records calls."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.with_auth = None

    def __call__(self, with_auth=None, **kwargs):
        self.with_auth = with_auth
        return self

    def route(self, method, path, result):
        self.routes[(method, path)] = result

    def request(self, method, path, payload=None, params=None):
        headers = self.with_auth({}) if self.with_auth is not None else {}
        self.calls.append(
            {
                "method": method,
                "path": path,
                "payload": payload,
                "params": params,
                "headers": headers,
            }
        )
        if (method, path) not in self.routes:
            raise BackendError(ErrorKind.NOT_FOUND, 404, f"no route for {method} {path}")
        result = self.routes[(method, path)]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(payload)
        return copy.deepcopy(result)

    def get(self, path, params=None):
        return self.request("GET", path, params=params)

    def post(self, path, payload=None):
        return self.request("POST", path, payload if payload is not None else {})

    def calls_to(self, method, path):
        return [call for call in self.calls if call["method"] == method and call["path"] == path]


@pytest.fixture()
def db_conn():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.row_factory = sqlite3.Row
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture()
def fake_backend():
    return FakeBackend()


@pytest.fixture()
def client(db_conn, fake_backend, monkeypatch):
    def _get_db():
        yield db_conn

    monkeypatch.setattr(main, "DATABASE_PATH", ":memory:")
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_backend_factory] = lambda: fake_backend
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def session_token(db_conn):
    return create_session(db_conn, "admin-1", "access-abc", role="admin", email="ops@hostel.test")


@pytest.fixture()
def make_booking():
    def _make(**overrides):
        payload = {
            "id": "bk-1",
            "hostelId": "h-1",
            "roomId": "r-101",
            "studentId": "s-9",
            "studentName": "Ama Mensah",
            "studentEmail": "ama@example.com",
            "studentPhone": "+233200000000",
            "bookingType": "semester",
            "status": "confirmed",
            "paymentStatus": "partial",
            "checkInDate": "2026-03-01",
            "checkOutDate": "2026-07-01",
            "totalAmount": 1000,
            "amountPaid": 400,
            "amountDue": 600,
            "createdAt": "2026-02-01T10:00:00Z",
            "hostel": {"id": "h-1", "name": "Unity Hall", "address": "Legon"},
            "room": {"id": "r-101", "roomNumber": "101", "floor": 1},
        }
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture(autouse=True)
def default_policy(monkeypatch):
    monkeypatch.setattr(policy, "_policy", policy.PaymentPolicy())
