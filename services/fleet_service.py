# services/fleet_service.py
import logging

from core.errors import Conflict, InvalidRequest, NotFound
from models.records import (
    BUS_STATUSES,
    MAINTENANCE_PRIORITIES,
    MAINTENANCE_STATUSES,
    Bus,
    Maintenance,
    Route,
)
from services import aggregation
from services.engine import DataEngine

logger = logging.getLogger(__name__)

BUS_FIELDS = (
    "number", "model", "bus_type", "capacity", "status",
    "assigned_supervisor_id", "last_maintenance", "next_maintenance", "maintenance_interval",
)
ROUTE_FIELDS = ("name", "start_point", "end_point", "distance", "estimated_duration", "status")
MAINTENANCE_FIELDS = (
    "type", "status", "priority", "scheduled_date", "completed_date",
    "actual_cost", "estimated_cost", "description",
)


def _check_capacity(capacity) -> None:
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
        raise InvalidRequest("capacity must be a positive integer")


def _check_maintenance(data: dict) -> None:
    if data.get("status") is not None and data["status"] not in MAINTENANCE_STATUSES:
        raise InvalidRequest(f"status must be one of {', '.join(MAINTENANCE_STATUSES)}")
    if data.get("priority") is not None and data["priority"] not in MAINTENANCE_PRIORITIES:
        raise InvalidRequest(f"priority must be one of {', '.join(MAINTENANCE_PRIORITIES)}")


class FleetService:
    def __init__(self, engine: DataEngine, due_soon_days: int = 7, revenue_months: int = 6):
        self.engine = engine
        self.due_soon_days = due_soon_days
        self.revenue_months = revenue_months

    # ------------- BUS -------------
    async def create_bus(self, data: dict) -> Bus:
        if not data.get("number"):
            raise InvalidRequest("number is required")
        _check_capacity(data.get("capacity"))
        if data.get("status", "active") not in BUS_STATUSES:
            raise InvalidRequest(f"status must be one of {', '.join(BUS_STATUSES)}")

        async with self.engine.transaction() as snapshot:
            if any(b.number == data["number"] for b in snapshot.buses):
                raise Conflict(f"Bus {data['number']} already exists")
            now = self.engine.now()
            bus = Bus.new(
                "bus", now,
                **{k: v for k, v in data.items() if k in BUS_FIELDS and v is not None},
            )
            snapshot.buses.append(bus)
            logger.info("Bus %s (%s) added, capacity %d", bus.id, bus.number, bus.capacity)
            return bus

    async def update_bus(self, bus_id: str, data: dict) -> Bus:
        changes = {k: v for k, v in data.items() if k in BUS_FIELDS and v is not None}
        if "capacity" in changes:
            _check_capacity(changes["capacity"])
        if "status" in changes and changes["status"] not in BUS_STATUSES:
            raise InvalidRequest(f"status must be one of {', '.join(BUS_STATUSES)}")

        async with self.engine.transaction() as snapshot:
            bus = snapshot.bus(bus_id)
            if bus is None:
                raise NotFound("Bus not found")
            if "capacity" in changes and changes["capacity"] < len(bus.assigned_students):
                raise InvalidRequest(
                    f"capacity {changes['capacity']} is below the {len(bus.assigned_students)} assigned students"
                )
            for key, value in changes.items():
                setattr(bus, key, value)
            bus.touch(self.engine.now())
            logger.info("Bus %s updated: %s", bus_id, ", ".join(sorted(changes)) or "no changes")
            return bus

    async def delete_bus(self, bus_id: str) -> None:
        """Excise a bus; references to it are left dangling."""
        async with self.engine.transaction() as snapshot:
            if snapshot.bus(bus_id) is None:
                raise NotFound("Bus not found")
            snapshot.buses = [b for b in snapshot.buses if b.id != bus_id]
            logger.info("Bus %s deleted", bus_id)

    async def list_buses(self, status: str | None = None) -> list[Bus]:
        snapshot = await self.engine.read()
        return [b for b in snapshot.buses if not status or b.status == status]

    async def get_bus(self, bus_id: str) -> Bus:
        snapshot = await self.engine.read()
        bus = snapshot.bus(bus_id)
        if bus is None:
            raise NotFound("Bus not found")
        return bus

    # ------------- ROUTE -------------
    async def create_route(self, data: dict) -> Route:
        for key in ("name", "start_point", "end_point"):
            if not data.get(key):
                raise InvalidRequest(f"{key} is required")
        async with self.engine.transaction() as snapshot:
            now = self.engine.now()
            route = Route.new(
                "route", now,
                **{k: v for k, v in data.items() if k in ROUTE_FIELDS and v is not None},
            )
            snapshot.routes.append(route)
            logger.info("Route %s (%s) added", route.id, route.name)
            return route

    async def list_routes(self) -> list[Route]:
        snapshot = await self.engine.read()
        return snapshot.routes

    # ------------- MAINTENANCE -------------
    async def create_maintenance(self, data: dict) -> Maintenance:
        if not data.get("bus_id"):
            raise InvalidRequest("busId is required")
        _check_maintenance(data)
        async with self.engine.transaction() as snapshot:
            if snapshot.bus(data.get("bus_id")) is None:
                raise NotFound("Bus not found")
            record = Maintenance.new(
                "maintenance", self.engine.now(),
                bus_id=data["bus_id"],
                **{k: v for k, v in data.items() if k in MAINTENANCE_FIELDS and v is not None},
            )
            snapshot.maintenance.append(record)
            logger.info("Maintenance %s (%s) scheduled for bus %s", record.id, record.type, record.bus_id)
            return record

    async def update_maintenance(self, record_id: str, data: dict) -> Maintenance:
        changes = {k: v for k, v in data.items() if k in MAINTENANCE_FIELDS and v is not None}
        _check_maintenance(changes)
        async with self.engine.transaction() as snapshot:
            record = snapshot.maintenance_record(record_id)
            if record is None:
                raise NotFound("Maintenance record not found")
            for key, value in changes.items():
                setattr(record, key, value)
            record.touch(self.engine.now())
            logger.info("Maintenance %s updated: %s", record_id, ", ".join(sorted(changes)) or "no changes")
            return record

    async def delete_maintenance(self, record_id: str) -> Maintenance:
        async with self.engine.transaction() as snapshot:
            record = snapshot.maintenance_record(record_id)
            if record is None:
                raise NotFound("Maintenance record not found")
            snapshot.maintenance = [m for m in snapshot.maintenance if m.id != record_id]
            logger.info("Maintenance %s deleted", record_id)
            return record

    async def maintenance_schedule(
        self,
        bus_id: str | None = None,
        record_type: str | None = None,
        status: str | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> dict:
        snapshot = await self.engine.read()
        return aggregation.maintenance_schedule(
            snapshot, self.engine.now(), bus_id, record_type, status, date_from, date_to,
        )

    # ------------- REPORTS -------------
    async def fleet_report(self, status: str | None = None, bus_type: str | None = None) -> dict:
        snapshot = await self.engine.read()
        return aggregation.fleet_report(snapshot, self.engine.now(), status, bus_type, self.due_soon_days)

    async def route_utilization(self) -> list[dict]:
        snapshot = await self.engine.read()
        return aggregation.route_utilization(snapshot)

    async def monthly_revenue(self) -> list[dict]:
        snapshot = await self.engine.read()
        return aggregation.monthly_revenue(snapshot, self.engine.now(), self.revenue_months)

    async def analytics_overview(self) -> dict:
        snapshot = await self.engine.read()
        return aggregation.analytics_overview(snapshot, self.engine.now(), self.revenue_months)
