import sys
from datetime import datetime
from pathlib import Path

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# Ensure project root is on sys.path so `services.*` / `core.*` imports work
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


# Explicitly enable pytest-asyncio plugin for async tests/fixtures
pytest_plugins = ("pytest_asyncio",)


from config.settings import settings
from core.singleton import Registry, get_registry
from main import app
from services.state_store import MemoryStateStore


# Fixed wall clock: trip-1 (Mar 10) is over, trip-2 is running, trip-3 is ahead.
NOW = datetime(2026, 3, 15, 9, 0, 0)


def fixed_clock() -> datetime:
    return NOW


def seed_document() -> dict:
    """A small campus: 3 students, 1 driver, 2 supervisors, 3 buses, 2 routes, 4 trips."""
    return {
        "users": [
            {"id": "stu-1", "role": "student", "name": "Amira Hassan", "email": "amira@uni.edu",
             "studentId": "S1001", "department": "Computer Science", "year": "3"},
            {"id": "stu-2", "role": "student", "name": "Omar Nabil", "email": "omar@uni.edu",
             "studentId": "S1002", "department": "Engineering", "year": "2"},
            {"id": "stu-3", "role": "student", "name": "Sara Adel", "email": "sara@uni.edu",
             "studentId": "S1003", "department": "Medicine", "year": "1"},
            {"id": "drv-1", "role": "driver", "name": "Karim Fathy", "phone": "+201000000001",
             "licenseNumber": "DL-778"},
            {"id": "sup-1", "role": "supervisor", "name": "Laila Samir", "assignedBusId": "bus-1"},
            {"id": "sup-2", "role": "supervisor", "name": "Youssef Ali"},
            {"id": "mgr-1", "role": "movement-manager", "name": "Hana Mostafa"},
            {"id": "adm-1", "role": "admin", "name": "Root Admin"},
        ],
        "buses": [
            {"id": "bus-1", "number": "B-101", "model": "Coaster", "type": "mini", "capacity": 2,
             "status": "active", "assignedStudents": [], "assignedSupervisorId": "sup-1",
             "lastMaintenance": "2026-03-01T00:00:00", "maintenanceInterval": 30},
            {"id": "bus-2", "number": "B-202", "model": "Citaro", "type": "standard", "capacity": 40,
             "status": "active", "assignedStudents": [],
             "lastMaintenance": "2026-02-01T00:00:00", "maintenanceInterval": 30},
            {"id": "bus-3", "number": "B-303", "model": "Citaro", "type": "standard", "capacity": 30,
             "status": "maintenance", "assignedStudents": []},
        ],
        "routes": [
            {"id": "route-1", "name": "North Campus Loop", "startPoint": "Main Gate", "endPoint": "North Campus",
             "distance": 12, "estimatedDuration": 45},
            {"id": "route-2", "name": "Downtown Express", "startPoint": "Main Gate", "endPoint": "Downtown",
             "distance": 25, "estimatedDuration": 60},
        ],
        "trips": [
            {"id": "trip-1", "routeId": "route-1", "busId": "bus-1", "driverId": "drv-1", "supervisorId": "sup-1",
             "date": "2026-03-10", "startTime": "07:30", "endTime": "08:15", "status": "scheduled",
             "passengers": 2, "operationalCost": 20},
            {"id": "trip-2", "routeId": "route-1", "busId": "bus-1", "driverId": "drv-1", "supervisorId": "sup-1",
             "date": "2026-03-15", "startTime": "08:30", "endTime": "09:30", "status": "scheduled",
             "passengers": 0},
            {"id": "trip-3", "routeId": "route-2", "busId": "bus-2", "driverId": "drv-1", "supervisorId": "sup-2",
             "date": "2026-03-20", "startTime": "10:00", "endTime": "11:00", "status": "scheduled",
             "passengers": 0},
            {"id": "trip-4", "routeId": "route-2", "busId": "bus-2", "driverId": "drv-1", "supervisorId": "sup-2",
             "date": "2026-03-05", "startTime": "10:00", "endTime": "11:00", "status": "cancelled",
             "passengers": 0},
        ],
        "bookings": [
            {"id": "bk-1", "studentId": "stu-1", "tripId": "trip-1", "status": "confirmed", "date": "2026-03-10"},
            {"id": "bk-2", "studentId": "stu-2", "tripId": "trip-1", "status": "confirmed", "date": "2026-03-10"},
            {"id": "bk-3", "studentId": "stu-1", "tripId": "trip-2", "status": "pending", "date": "2026-03-15"},
            {"id": "bk-4", "studentId": "stu-3", "tripId": "trip-3", "status": "pending", "date": "2026-03-20"},
        ],
        "payments": [
            {"id": "pay-1", "studentId": "stu-1", "tripId": "trip-1", "bookingId": "bk-1", "amount": 50,
             "method": "bank", "status": "completed", "date": "2026-03-10"},
            {"id": "pay-2", "studentId": "stu-2", "tripId": "trip-1", "bookingId": "bk-2", "amount": 50,
             "method": "cash", "status": "pending", "date": "2026-03-10"},
            {"id": "pay-3", "studentId": "stu-3", "tripId": "trip-3", "bookingId": "bk-4", "amount": 30,
             "method": "cash", "status": "pending", "date": "2026-03-12"},
        ],
        "attendance": [
            {"id": "att-1", "studentId": "stu-1", "tripId": "trip-1", "status": "present",
             "timestamp": "2026-03-10T07:35:00"},
            {"id": "att-2", "studentId": "stu-2", "tripId": "trip-1", "status": "absent",
             "timestamp": "2026-03-10T07:35:00"},
        ],
        "notifications": [],
        "announcements": [
            {"id": "ann-1", "title": "Exam week schedule", "message": "Extra trips after 6pm",
             "type": "schedule", "priority": "medium", "targetRoles": ["student"], "createdBy": "adm-1",
             "createdAt": "2026-03-01T10:00:00"},
        ],
        "maintenance": [{"id": "mnt-1", "busId": "bus-2", "status": "open"}],
    }


def make_token(user_id: str, role: str) -> str:
    return jwt.encode({"sub": user_id, "role": role}, settings.JWT_SECRET, algorithm="HS256")


def auth(user_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture()
def store():
    return MemoryStateStore(seed_document())


@pytest.fixture()
def registry(store):
    return Registry(store, clock=fixed_clock)


@pytest.fixture()
def engine(registry):
    return registry.engine


@pytest_asyncio.fixture()
async def client(registry):
    """Async test client over the ASGI app, wired to the in-memory registry."""
    app.dependency_overrides[get_registry] = lambda: registry
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac
    app.dependency_overrides.clear()
