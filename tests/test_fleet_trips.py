import pytest

from core.errors import Conflict, InvalidRequest, InvalidTransition, NotFound


TRIP = {
    "route_id": "route-2",
    "bus_id": "bus-2",
    "driver_id": "drv-1",
    "supervisor_id": "sup-2",
    "date": "2026-03-22",
    "start_time": "07:00",
    "end_time": "08:00",
}


# ---------------- Buses & routes ---------------- #

@pytest.mark.asyncio
async def test_create_bus(registry):
    bus = await registry.fleet.create_bus({"number": "B-404", "capacity": 50, "bus_type": "double"})
    assert bus.status == "active"
    assert bus.assigned_students == []
    assert bus.to_dict()["type"] == "double"

    with pytest.raises(Conflict):
        await registry.fleet.create_bus({"number": "B-404", "capacity": 10})


@pytest.mark.parametrize("capacity", [0, -3, 1.5, True, None])
@pytest.mark.asyncio
async def test_bus_capacity_must_be_positive_int(registry, capacity):
    with pytest.raises(InvalidRequest):
        await registry.fleet.create_bus({"number": "B-999", "capacity": capacity})


@pytest.mark.asyncio
async def test_capacity_cannot_drop_below_roster(registry):
    await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    with pytest.raises(InvalidRequest):
        await registry.fleet.update_bus("bus-1", {"capacity": 0})

    await registry.payments.create_payment("stu-2", "trip-1", 10, "bank")
    await registry.assignments.assign_student_to_bus("stu-2", "bus-1")
    with pytest.raises(InvalidRequest):
        await registry.fleet.update_bus("bus-1", {"capacity": 1})

    bus = await registry.fleet.update_bus("bus-1", {"capacity": 3, "model": "Rosa"})
    assert bus.capacity == 3
    assert bus.model == "Rosa"


@pytest.mark.asyncio
async def test_delete_bus_leaves_references_dangling(registry, store):
    await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    await registry.fleet.delete_bus("bus-1")

    document = store.document
    assert "bus-1" not in [b["id"] for b in document["buses"]]
    assert next(u for u in document["users"] if u["id"] == "stu-1")["assignedBusId"] == "bus-1"
    with pytest.raises(NotFound):
        await registry.fleet.delete_bus("bus-1")

    # joins over the missing bus resolve to None
    trip = await registry.trips.get_trip("trip-1")
    assert trip["bus"] is None
    assert trip["performance"]["utilization"] == 0


@pytest.mark.asyncio
async def test_routes(registry):
    route = await registry.fleet.create_route({"name": "East Gate", "start_point": "A", "end_point": "B"})
    assert route.id in [r.id for r in await registry.fleet.list_routes()]
    with pytest.raises(InvalidRequest):
        await registry.fleet.create_route({"name": "Half"})


# ---------------- Trips ---------------- #

@pytest.mark.asyncio
async def test_create_trip_notifies_driver_and_supervisor(registry, store):
    trip = await registry.trips.create_trip(dict(TRIP))
    assert trip.status == "scheduled"
    assert trip.passengers == 0

    notes = store.document["notifications"]
    assert sorted(n["userId"] for n in notes) == ["drv-1", "sup-2"]
    assert {n["type"] for n in notes} == {"trip_created"}
    assert all(n["tripId"] == trip.id for n in notes)


@pytest.mark.parametrize(
    "override, error",
    [
        ({"route_id": "route-404"}, NotFound),
        ({"bus_id": "bus-404"}, NotFound),
        ({"driver_id": "stu-1"}, NotFound),
        ({"supervisor_id": "drv-1"}, NotFound),
        ({"date": "next week"}, InvalidRequest),
        ({"start_time": "7am"}, InvalidRequest),
        ({"end_time": None}, InvalidRequest),
    ],
)
@pytest.mark.asyncio
async def test_create_trip_validation(registry, override, error):
    with pytest.raises(error):
        await registry.trips.create_trip({**TRIP, **override})


@pytest.mark.asyncio
async def test_update_and_cancel_trip(registry):
    trip = await registry.trips.update_trip("trip-3", {"passengers": 12, "start_time": "10:15", "id": "hijack"})
    assert trip.id == "trip-3"
    assert trip.passengers == 12
    assert trip.start_time == "10:15"

    cancelled = await registry.trips.cancel_trip("trip-3")
    assert cancelled.status == "cancelled"
    with pytest.raises(InvalidTransition):
        await registry.trips.cancel_trip("trip-3")
    with pytest.raises(InvalidTransition):
        await registry.trips.update_trip("trip-3", {"status": "scheduled"})

    # trip-1 was completed by the lifecycle pass
    with pytest.raises(InvalidTransition):
        await registry.trips.cancel_trip("trip-1")


@pytest.mark.asyncio
async def test_trip_listings(registry):
    driver = await registry.trips.driver_trips("drv-1")
    assert driver["summary"]["totalTrips"] == 4

    supervisor = await registry.trips.supervisor_trips("sup-1", status="active")
    assert [t["id"] for t in supervisor["trips"]] == ["trip-2"]

    by_route = await registry.trips.list_trips(route_id="route-1", search="B-101")
    assert [t["id"] for t in by_route["trips"]] == ["trip-2", "trip-1"]

    detail = await registry.trips.get_trip("trip-1")
    assert detail["payments"]["revenue"] == 50
    with pytest.raises(NotFound):
        await registry.trips.get_trip("trip-404")


@pytest.mark.asyncio
async def test_fleet_report_uses_clock(registry):
    report = await registry.fleet.fleet_report()
    statuses = {b["id"]: b["maintenance"]["status"] for b in report["fleet"]}
    assert statuses == {"bus-1": "ok", "bus-2": "overdue", "bus-3": "ok"}

    revenue = await registry.fleet.monthly_revenue()
    assert revenue[-1]["monthKey"] == "2026-03"
    assert revenue[-1]["revenue"] == 50


# ---------------- Maintenance ---------------- #

@pytest.mark.asyncio
async def test_maintenance_record_lifecycle(registry, store):
    record = await registry.fleet.create_maintenance(
        {"bus_id": "bus-2", "scheduled_date": "2026-03-18", "description": "Brake check"}
    )
    assert (record.type, record.status, record.priority) == ("preventive", "scheduled", "medium")
    saved = next(m for m in store.document["maintenance"] if m["id"] == record.id)
    assert saved["busId"] == "bus-2"
    assert saved["status"] == "scheduled"

    updated = await registry.fleet.update_maintenance(record.id, {"status": "completed", "actual_cost": 300})
    assert updated.actual_cost == 300
    assert updated.bus_id == "bus-2"

    schedule = await registry.fleet.maintenance_schedule(bus_id="bus-2")
    row = schedule["schedule"][0]
    assert row["maintenanceStatus"] == "approaching"
    assert row["totalMaintenanceCost"] == 300
    assert [m["id"] for m in row["upcomingMaintenance"]] == ["mnt-1"]

    await registry.fleet.delete_maintenance(record.id)
    assert [m["id"] for m in store.document["maintenance"]] == ["mnt-1"]
    with pytest.raises(NotFound):
        await registry.fleet.delete_maintenance(record.id)


@pytest.mark.parametrize(
    "data, error",
    [
        ({"bus_id": "bus-404"}, NotFound),
        ({}, InvalidRequest),
        ({"bus_id": "bus-1", "priority": "urgent"}, InvalidRequest),
        ({"bus_id": "bus-1", "status": "done"}, InvalidRequest),
    ],
)
@pytest.mark.asyncio
async def test_create_maintenance_validation(registry, data, error):
    with pytest.raises(error):
        await registry.fleet.create_maintenance(data)
