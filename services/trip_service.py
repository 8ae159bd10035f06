"""Trip scheduling, edits, cancellation and per-role trip listings."""
import logging

from core.errors import InvalidRequest, InvalidTransition, NotFound
from models.records import TRIP_STATUSES, Driver, Supervisor, Trip
from services import aggregation
from services.engine import DataEngine
from services.notification_service import notify_trip_created
from services.trip_lifecycle import TERMINAL, parse_date, parse_time

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "route_id", "bus_id", "driver_id", "supervisor_id",
    "date", "start_time", "end_time", "status", "passengers", "operational_cost",
)


def _check_schedule(day, start, end):
    if day is not None and parse_date(day) is None:
        raise InvalidRequest("date must be YYYY-MM-DD")
    for value in (start, end):
        if value is not None and parse_time(value) is None:
            raise InvalidRequest("times must be HH:MM")


def _check_refs(snapshot, route_id=None, bus_id=None, driver_id=None, supervisor_id=None):
    if route_id is not None and snapshot.route(route_id) is None:
        raise NotFound("Route not found")
    if bus_id is not None and snapshot.bus(bus_id) is None:
        raise NotFound("Bus not found")
    if driver_id is not None and not isinstance(snapshot.user(driver_id), Driver):
        raise NotFound("Driver not found")
    if supervisor_id is not None and not isinstance(snapshot.user(supervisor_id), Supervisor):
        raise NotFound("Supervisor not found")


class TripService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def create_trip(self, data: dict) -> Trip:
        for key in ("route_id", "bus_id", "driver_id", "date", "start_time", "end_time"):
            if not data.get(key):
                raise InvalidRequest(f"{key} is required")
        _check_schedule(data["date"], data["start_time"], data["end_time"])

        async with self.engine.transaction() as snapshot:
            _check_refs(snapshot, data["route_id"], data["bus_id"], data["driver_id"], data.get("supervisor_id"))
            now = self.engine.now()
            trip = Trip.new(
                "trip", now,
                route_id=data["route_id"],
                bus_id=data["bus_id"],
                driver_id=data["driver_id"],
                supervisor_id=data.get("supervisor_id"),
                date=data["date"],
                start_time=data["start_time"],
                end_time=data["end_time"],
                operational_cost=data.get("operational_cost"),
                status="scheduled",
                passengers=0,
            )
            snapshot.trips.append(trip)
            sent = notify_trip_created(snapshot, trip, now)
            logger.info("Trip %s scheduled on %s (%d notification(s))", trip.id, trip.date, sent)
            return trip

    async def update_trip(self, trip_id: str, data: dict) -> Trip:
        changes = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        _check_schedule(changes.get("date"), changes.get("start_time"), changes.get("end_time"))
        if "status" in changes and changes["status"] not in TRIP_STATUSES:
            raise InvalidRequest(f"status must be one of {', '.join(TRIP_STATUSES)}")
        if "passengers" in changes and changes["passengers"] < 0:
            raise InvalidRequest("passengers must not be negative")

        async with self.engine.transaction() as snapshot:
            trip = snapshot.trip(trip_id)
            if trip is None:
                raise NotFound("Trip not found")
            if trip.status in TERMINAL and changes.get("status", trip.status) != trip.status:
                raise InvalidTransition(f"Trip is already {trip.status}")
            _check_refs(
                snapshot,
                changes.get("route_id"), changes.get("bus_id"),
                changes.get("driver_id"), changes.get("supervisor_id"),
            )
            for key, value in changes.items():
                setattr(trip, key, value)
            trip.touch(self.engine.now())
            logger.info("Trip %s updated: %s", trip_id, ", ".join(sorted(changes)) or "no changes")
            return trip

    async def cancel_trip(self, trip_id: str) -> Trip:
        async with self.engine.transaction() as snapshot:
            trip = snapshot.trip(trip_id)
            if trip is None:
                raise NotFound("Trip not found")
            if trip.status in TERMINAL:
                raise InvalidTransition(f"Trip is already {trip.status}")
            trip.status = "cancelled"
            trip.touch(self.engine.now())
            logger.info("Trip %s cancelled", trip_id)
            return trip

    # ---------------- Reads ---------------- #

    async def get_trip(self, trip_id: str) -> dict:
        snapshot = await self.engine.read()
        trip = snapshot.trip(trip_id)
        if trip is None:
            raise NotFound("Trip not found")
        return aggregation.enrich_trip(trip, aggregation.Index(snapshot))

    async def list_trips(
        self,
        status: str | None = None,
        date: str | None = None,
        route_id: str | None = None,
        driver_id: str | None = None,
        bus_id: str | None = None,
        supervisor_id: str | None = None,
        search: str | None = None,
    ) -> dict:
        snapshot = await self.engine.read()
        filters = {
            "status": status, "date": date, "route_id": route_id,
            "driver_id": driver_id, "bus_id": bus_id, "supervisor_id": supervisor_id,
        }
        trips = snapshot.trips
        for field, wanted in filters.items():
            if wanted:
                trips = [t for t in trips if getattr(t, field) == wanted]
        return aggregation.trip_listing(snapshot, trips, search)

    async def driver_trips(self, driver_id: str, status: str | None = None, date: str | None = None) -> dict:
        return await self.list_trips(status=status, date=date, driver_id=driver_id)

    async def supervisor_trips(self, supervisor_id: str, status: str | None = None,
                               date: str | None = None) -> dict:
        return await self.list_trips(status=status, date=date, supervisor_id=supervisor_id)

    async def performance_report(self, start: str | None = None, end: str | None = None) -> dict:
        snapshot = await self.engine.read()
        return aggregation.performance_report(snapshot, start, end)

    async def supervisor_report(self, supervisor_id: str, start: str | None = None,
                                end: str | None = None) -> dict:
        snapshot = await self.engine.read()
        return aggregation.supervisor_report(snapshot, supervisor_id, start, end)
