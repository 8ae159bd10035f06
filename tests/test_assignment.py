import asyncio

import pytest

from core.errors import AlreadyAssigned, Full, NotFound, SubscriptionInactive


async def _pay(registry, student_id, trip_id="trip-3"):
    return await registry.payments.create_payment(student_id, trip_id, 100, "visa")


@pytest.mark.asyncio
async def test_assignment_requires_a_completed_payment(registry, store):
    # stu-3 only has a pending cash payment
    with pytest.raises(SubscriptionInactive):
        await registry.assignments.assign_student_to_bus("stu-3", "bus-2")

    bus = next(b for b in store.document["buses"] if b["id"] == "bus-2")
    assert bus["assignedStudents"] == []


@pytest.mark.asyncio
async def test_successful_assignment_updates_roster_and_user(registry, store):
    result = await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    assert result["bus"].assigned_students == ["stu-1"]
    assert result["user"].assigned_bus_id == "bus-1"

    document = store.document
    bus = next(b for b in document["buses"] if b["id"] == "bus-1")
    user = next(u for u in document["users"] if u["id"] == "stu-1")
    assert bus["assignedStudents"] == ["stu-1"]
    assert bus["updatedAt"] == "2026-03-15T09:00:00"
    assert user["assignedBusId"] == "bus-1"

    with pytest.raises(AlreadyAssigned):
        await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    bus = next(b for b in store.document["buses"] if b["id"] == "bus-1")
    assert bus["assignedStudents"] == ["stu-1"]


@pytest.mark.asyncio
async def test_full_bus_rejects_third_student(registry):
    await _pay(registry, "stu-2")
    await _pay(registry, "stu-3")

    await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    await registry.assignments.assign_student_to_bus("stu-2", "bus-1")
    with pytest.raises(Full):
        await registry.assignments.assign_student_to_bus("stu-3", "bus-1")

    roster = await registry.assignments.roster("bus-1")
    assert roster["assigned"] == 2
    assert roster["available"] == 0
    assert [s["id"] for s in roster["students"]] == ["stu-1", "stu-2"]


@pytest.mark.asyncio
async def test_concurrent_assignments_never_exceed_capacity(registry, store):
    await _pay(registry, "stu-2")
    await _pay(registry, "stu-3")

    results = await asyncio.gather(
        *(registry.assignments.assign_student_to_bus(s, "bus-1") for s in ("stu-1", "stu-2", "stu-3")),
        return_exceptions=True,
    )
    failures = [r for r in results if isinstance(r, Exception)]
    assert len(failures) == 1
    assert isinstance(failures[0], Full)

    bus = next(b for b in store.document["buses"] if b["id"] == "bus-1")
    assert len(bus["assignedStudents"]) == 2


@pytest.mark.asyncio
async def test_reassignment_moves_student_between_rosters(registry, store):
    await registry.assignments.assign_student_to_bus("stu-1", "bus-1")
    await registry.assignments.assign_student_to_bus("stu-1", "bus-2")

    buses = {b["id"]: b for b in store.document["buses"]}
    assert buses["bus-1"]["assignedStudents"] == []
    assert buses["bus-2"]["assignedStudents"] == ["stu-1"]


@pytest.mark.parametrize(
    "student_id, bus_id",
    [("nobody", "bus-1"), ("drv-1", "bus-1"), ("stu-1", "bus-404")],
)
@pytest.mark.asyncio
async def test_unknown_student_or_bus(registry, student_id, bus_id):
    with pytest.raises(NotFound):
        await registry.assignments.assign_student_to_bus(student_id, bus_id)


@pytest.mark.asyncio
async def test_bus_without_capacity_is_full(registry, store):
    await registry.fleet.update_bus("bus-3", {"status": "active"})
    snapshot = await registry.engine.read()
    snapshot.bus("bus-3").capacity = None
    await store.save(snapshot)

    with pytest.raises(Full):
        await registry.assignments.assign_student_to_bus("stu-1", "bus-3")
