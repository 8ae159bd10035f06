# core/singleton.py
"""
Unified service registry.

One DataEngine (and therefore one writer lock) per process; every service
shares it. Routers receive the registry through the `get_registry`
dependency so tests can swap in a registry over a memory store.
"""
from datetime import datetime
from typing import Callable

from config.settings import Settings, settings
from services.assignment_service import AssignmentService
from services.attendance_service import AttendanceService
from services.booking_service import BookingService
from services.engine import DataEngine
from services.fleet_service import FleetService
from services.notification_service import NotificationService
from services.payment_service import PaymentService
from services.state_store import StateStore, build_state_store
from services.trip_service import TripService
from services.user_service import UserService


class Registry:
    def __init__(self, store: StateStore, config: Settings = settings,
                 clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.engine = DataEngine(store, clock)
        self.assignments = AssignmentService(self.engine)
        self.payments = PaymentService(self.engine)
        self.bookings = BookingService(self.engine)
        self.attendance = AttendanceService(self.engine)
        self.trips = TripService(self.engine)
        self.fleet = FleetService(
            self.engine,
            due_soon_days=config.MAINTENANCE_DUE_SOON_DAYS,
            revenue_months=config.REVENUE_WINDOW_MONTHS,
        )
        self.notifications = NotificationService(self.engine)
        self.users = UserService(self.engine)


_registry: Registry | None = None


def get_registry() -> Registry:
    """FastAPI dependency; builds the process-wide registry on first use."""
    global _registry
    if _registry is None:
        _registry = Registry(build_state_store(settings))
    return _registry


__all__ = ["Registry", "get_registry"]
