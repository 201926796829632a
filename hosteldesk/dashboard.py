import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from .bookings import hostel_bookings
from .errors import BackendError, ErrorKind
from .schemas import Booking, BookingStatus, RoomStatus

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN})
RECENT_LIMIT = 10
RECENT_PER_HOSTEL = 5
_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _empty_stats() -> Dict[str, Any]:
    return {
        "total_bookings": 0,
        "active_bookings": 0,
        "total_revenue": 0.0,
        "occupancy_rate": 0.0,
        "total_rooms": 0,
        "available_rooms": 0,
    }


def _created_at(booking: Booking) -> datetime:
    if not booking.created_at:
        return _OLDEST
    value = booking.created_at.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        created = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unparseable createdAt on booking %s", booking.id)
        return _OLDEST
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


def _newest_first(bookings: List[Booking]) -> List[Booking]:
    return sorted(bookings, key=_created_at, reverse=True)


def _hostel_id(hostel: Any) -> str | None:
    if isinstance(hostel, dict) and hostel.get("id") is not None:
        return str(hostel["id"])
    return None


def build_dashboard(backend) -> Dict[str, Any]:
    """Aggregate bookings and rooms across every hostel the operator manages.

    A hostel whose bookings or rooms cannot be fetched is skipped and listed
    in ``failed_hostels``; the remaining hostels still count.
    """
    hostels = backend.get("/hostels/fetch") or []
    if not isinstance(hostels, list):
        hostels = []
    stats = _empty_stats()
    failed: List[str] = []
    recent: List[Booking] = []

    for hostel in hostels:
        hostel_id = _hostel_id(hostel)
        if hostel_id is None:
            continue
        try:
            bookings = hostel_bookings(backend, hostel_id)
        except BackendError as exc:
            if exc.kind == ErrorKind.SESSION_EXPIRED:
                raise
            logger.warning("Failed to fetch bookings for hostel %s: %s", hostel_id, exc.kind.value)
            failed.append(hostel_id)
            continue
        stats["total_bookings"] += len(bookings)
        stats["active_bookings"] += sum(1 for b in bookings if b.status in ACTIVE_STATUSES)
        stats["total_revenue"] += sum(b.total_amount for b in bookings)
        recent.extend(_newest_first(bookings)[:RECENT_PER_HOSTEL])

    for hostel in hostels:
        hostel_id = _hostel_id(hostel)
        if hostel_id is None:
            continue
        try:
            rooms = backend.get(f"/rooms/hostel/{hostel_id}") or []
        except BackendError as exc:
            if exc.kind == ErrorKind.SESSION_EXPIRED:
                raise
            logger.warning("Failed to fetch rooms for hostel %s: %s", hostel_id, exc.kind.value)
            if hostel_id not in failed:
                failed.append(hostel_id)
            continue
        if not isinstance(rooms, list):
            continue
        stats["total_rooms"] += len(rooms)
        stats["available_rooms"] += sum(
            1
            for room in rooms
            if isinstance(room, dict) and room.get("status") == RoomStatus.AVAILABLE.value
        )

    if stats["total_rooms"] > 0:
        occupied = stats["total_rooms"] - stats["available_rooms"]
        stats["occupancy_rate"] = round(occupied / stats["total_rooms"] * 100, 1)
    stats["total_revenue"] = round(stats["total_revenue"], 2)

    return {
        "stats": stats,
        "recent_bookings": _newest_first(recent)[:RECENT_LIMIT],
        "hostels": hostels,
        "failed_hostels": failed,
        "partial": bool(failed),
    }
