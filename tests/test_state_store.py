import json

import pytest

from config.settings import Settings
from conftest import fixed_clock, seed_document
from core.errors import StoreUnavailable
from models.records import OtherUser, Route, Snapshot, Student
from services import state_store
from services.engine import DataEngine
from services.state_store import JsonFileStateStore, MemoryStateStore, build_state_store


@pytest.mark.asyncio
async def test_missing_file_loads_empty(tmp_path):
    store = JsonFileStateStore(tmp_path / "db.json")
    snapshot = await store.load()
    assert snapshot.users == []
    assert snapshot.trips == []


@pytest.mark.asyncio
async def test_json_round_trip_keeps_unknown_data(tmp_path):
    path = tmp_path / "nested" / "db.json"
    document = seed_document()
    document["buses"][0]["color"] = "blue"
    document["auditLog"] = [{"at": "2026-03-01T10:00:00", "event": "import"}]
    document["users"].append({"id": "guest-1", "role": "guest", "name": "Visitor", "badge": 7})
    path.parent.mkdir()
    path.write_text(json.dumps(document), encoding="utf-8")

    store = JsonFileStateStore(path)
    snapshot = await store.load()
    assert isinstance(snapshot.user("stu-1"), Student)
    assert isinstance(snapshot.user("guest-1"), OtherUser)

    snapshot.bus("bus-1").assigned_students.append("stu-1")
    await store.save(snapshot)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["maintenance"] == [{"id": "mnt-1", "busId": "bus-2", "status": "open"}]
    assert saved["auditLog"] == [{"at": "2026-03-01T10:00:00", "event": "import"}]
    assert saved["buses"][0]["color"] == "blue"
    assert saved["buses"][0]["assignedStudents"] == ["stu-1"]
    assert saved["buses"][0]["type"] == "mini"
    assert saved["users"][-1] == {"id": "guest-1", "role": "guest", "name": "Visitor", "badge": 7}
    assert saved["trips"][0]["startTime"] == "07:30"

    # no temp files left next to the document
    assert [p.name for p in path.parent.iterdir()] == ["db.json"]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[]",
        json.dumps({"trips": "not-a-list"}),
        json.dumps({"buses": [{"number": "B-1"}]}),
    ],
)
@pytest.mark.asyncio
async def test_malformed_content_is_unavailable_not_empty(tmp_path, content):
    path = tmp_path / "db.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(StoreUnavailable):
        await JsonFileStateStore(path).load()


@pytest.mark.asyncio
async def test_invalid_utf8_is_unavailable(tmp_path):
    path = tmp_path / "db.json"
    path.write_bytes(b'{"users": [{"id": "\xff\xfe", "role": "student"}]}')
    with pytest.raises(StoreUnavailable):
        await JsonFileStateStore(path).load()


@pytest.mark.asyncio
async def test_save_into_unwritable_location_is_unavailable(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = JsonFileStateStore(blocker / "db.json")
    with pytest.raises(StoreUnavailable):
        await store.save(Snapshot())
    assert [p.name for p in tmp_path.iterdir()] == ["not-a-dir"]


@pytest.mark.asyncio
async def test_failed_replace_keeps_previous_document(tmp_path, monkeypatch):
    path = tmp_path / "db.json"
    original = json.dumps({"buses": [{"id": "bus-1", "number": "B-101", "capacity": 10}]})
    path.write_text(original, encoding="utf-8")

    def refuse(src, dst):
        raise PermissionError(13, "Permission denied", dst)

    monkeypatch.setattr(state_store.os, "replace", refuse)
    engine = DataEngine(JsonFileStateStore(path), clock=fixed_clock)

    with pytest.raises(StoreUnavailable):
        async with engine.transaction() as snapshot:
            snapshot.buses.clear()

    assert path.read_text(encoding="utf-8") == original
    assert [p.name for p in tmp_path.iterdir()] == ["db.json"]


@pytest.mark.asyncio
async def test_memory_store_hands_out_independent_copies():
    store = MemoryStateStore(seed_document())
    first = await store.load()
    first.buses.clear()
    second = await store.load()
    assert len(second.buses) == 3

    await store.save(first)
    assert store.saves == 1
    assert (await store.load()).buses == []


def test_build_state_store_by_backend(tmp_path):
    store = build_state_store(Settings(STATE_BACKEND="json", STATE_FILE=str(tmp_path / "db.json")))
    assert isinstance(store, JsonFileStateStore)
    assert isinstance(build_state_store(Settings(STATE_BACKEND="memory")), MemoryStateStore)
    with pytest.raises(ValueError):
        build_state_store(Settings(STATE_BACKEND="redis"))


@pytest.mark.asyncio
async def test_save_writes_back_only_stored_fields():
    document = {
        "buses": [{"id": "bus-9", "number": "B-909", "capacity": 12, "model": None}],
        "payments": [{"id": "pay-9", "amount": 5}],
    }
    store = MemoryStateStore(document)
    await store.save(await store.load())
    saved = store.document
    assert saved["buses"] == document["buses"]
    assert saved["payments"] == document["payments"]
    assert saved["trips"] == []


@pytest.mark.asyncio
async def test_engine_created_records_store_their_defaults(registry, store):
    bus = await registry.fleet.create_bus({"number": "B-777", "capacity": 20})
    saved = next(b for b in store.document["buses"] if b["id"] == bus.id)
    assert saved["status"] == "active"
    assert saved["assignedStudents"] == []
    assert saved["createdAt"] == "2026-03-15T09:00:00"
    assert "model" not in saved


@pytest.mark.asyncio
async def test_records_added_to_an_empty_store_are_saved():
    store = MemoryStateStore()
    engine = DataEngine(store, clock=fixed_clock)
    async with engine.transaction() as snapshot:
        snapshot.routes.append(Route.new("route", fixed_clock(), name="Loop"))
    assert [r["name"] for r in store.document["routes"]] == ["Loop"]
