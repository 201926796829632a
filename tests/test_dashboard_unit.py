import pytest

from hosteldesk.dashboard import build_dashboard
from hosteldesk.errors import BackendError, ErrorKind


def _rooms(*statuses):
    return [{"id": f"r-{i}", "status": status} for i, status in enumerate(statuses)]


def test_dashboard_aggregates_all_hostels(fake_backend, make_booking):
    fake_backend.route("GET", "/hostels/fetch", [{"id": "h-1"}, {"id": "h-2"}])
    fake_backend.route(
        "GET",
        "/bookings/hostel/h-1",
        [
            make_booking(id="a", status="confirmed", totalAmount=1000, createdAt="2026-02-01T00:00:00Z"),
            make_booking(id="b", status="pending", totalAmount="500", createdAt="2026-02-03T00:00:00Z"),
        ],
    )
    fake_backend.route(
        "GET",
        "/bookings/hostel/h-2",
        [make_booking(id="c", status="checked_in", totalAmount=250, createdAt="2026-02-02T00:00:00Z")],
    )
    fake_backend.route("GET", "/rooms/hostel/h-1", _rooms("available", "occupied", "occupied"))
    fake_backend.route("GET", "/rooms/hostel/h-2", _rooms("available"))

    data = build_dashboard(fake_backend)

    assert data["stats"] == {
        "total_bookings": 3,
        "active_bookings": 2,
        "total_revenue": 1750.0,
        "occupancy_rate": 50.0,
        "total_rooms": 4,
        "available_rooms": 2,
    }
    assert [b.id for b in data["recent_bookings"]] == ["b", "c", "a"]
    assert data["partial"] is False
    assert data["failed_hostels"] == []


def test_one_failing_hostel_does_not_abort_aggregation(fake_backend, make_booking):
    fake_backend.route("GET", "/hostels/fetch", [{"id": "h-1"}, {"id": "h-2"}])
    fake_backend.route(
        "GET", "/bookings/hostel/h-1", BackendError(ErrorKind.SERVER, 500, "db down")
    )
    fake_backend.route("GET", "/bookings/hostel/h-2", [make_booking(id="c", status="confirmed")])
    fake_backend.route("GET", "/rooms/hostel/h-1", _rooms("occupied"))
    fake_backend.route("GET", "/rooms/hostel/h-2", _rooms("available"))

    data = build_dashboard(fake_backend)

    assert data["stats"]["total_bookings"] == 1
    assert data["stats"]["total_rooms"] == 2
    assert data["failed_hostels"] == ["h-1"]
    assert data["partial"] is True


def test_expired_session_aborts_aggregation(fake_backend):
    fake_backend.route("GET", "/hostels/fetch", [{"id": "h-1"}])
    fake_backend.route(
        "GET", "/bookings/hostel/h-1", BackendError(ErrorKind.SESSION_EXPIRED, 401, "expired")
    )
    with pytest.raises(BackendError):
        build_dashboard(fake_backend)


def test_dashboard_without_hostels_is_empty(fake_backend):
    fake_backend.route("GET", "/hostels/fetch", [])
    data = build_dashboard(fake_backend)
    assert data["stats"]["total_bookings"] == 0
    assert data["stats"]["occupancy_rate"] == 0.0
    assert data["recent_bookings"] == []


def test_recent_bookings_compare_timestamps_not_strings(fake_backend, make_booking):
    fake_backend.route("GET", "/hostels/fetch", [{"id": "h-1"}])
    fake_backend.route(
        "GET",
        "/bookings/hostel/h-1",
        [
            make_booking(id="offset", createdAt="2026-02-03T10:00:00+02:00"),
            make_booking(id="zulu", createdAt="2026-02-03T09:00:00.000Z"),
            make_booking(id="undated", createdAt=None),
        ],
    )
    fake_backend.route("GET", "/rooms/hostel/h-1", [])

    data = build_dashboard(fake_backend)

    assert [b.id for b in data["recent_bookings"]] == ["zulu", "offset", "undated"]
