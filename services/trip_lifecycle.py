"""
Trip lifecycle pass.

Derives trip status from the wall clock:

    scheduled -> active -> completed      (derived here)
    *         -> cancelled                (operator write, never derived)

completed and cancelled are terminal for this pass. The pass is idempotent;
trips whose date/time fields are missing or malformed are left untouched.
"""
from datetime import date, datetime, time
import logging

from models.records import Snapshot, Trip

logger = logging.getLogger(__name__)

TERMINAL = ("completed", "cancelled")
REFERENCE_DATE = date(2000, 1, 1)


def parse_time(value: str | None) -> time | None:
    """Parse HH:MM or HH:MM:SS; None when missing or malformed."""
    if not value or not isinstance(value, str):
        return None
    try:
        return time.fromisoformat(value.strip())
    except ValueError:
        return None


def parse_date(value: str | None) -> date | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def trip_bounds(trip: Trip) -> tuple[datetime, datetime] | None:
    day = parse_date(trip.date)
    start = parse_time(trip.start_time)
    end = parse_time(trip.end_time)
    if day is None or start is None or end is None:
        return None
    return datetime.combine(day, start), datetime.combine(day, end)


def duration_minutes(start_time: str | None, end_time: str | None) -> float:
    """endTime - startTime in minutes on a fixed reference date (0 if malformed)."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    if start is None or end is None:
        return 0
    delta = datetime.combine(REFERENCE_DATE, end) - datetime.combine(REFERENCE_DATE, start)
    return delta.total_seconds() / 60


def next_status(trip: Trip, now: datetime) -> str:
    if trip.status in TERMINAL:
        return trip.status
    bounds = trip_bounds(trip)
    if bounds is None:
        return trip.status
    start, end = bounds
    if now >= end:
        return "completed"
    if now >= start and trip.status == "scheduled":
        return "active"
    return trip.status


def advance_trips(snapshot: Snapshot, now: datetime) -> list[str]:
    """Apply the lifecycle to every trip in place; return the IDs that changed."""
    changed = []
    for trip in snapshot.trips:
        status = next_status(trip, now)
        if status != trip.status:
            logger.info("Trip %s: %s -> %s", trip.id, trip.status, status)
            trip.status = status
            trip.touch(now)
            changed.append(trip.id)
    return changed
