"""
Pydantic records for every collection held in a Snapshot.

Purpose:
- Give each persisted entity an explicit, typed shape (users are a variant
  keyed by `role`)
- Keep the persisted camelCase field names (alias generator) so existing
  documents round-trip unchanged
- Preserve unknown fields (extra="allow") and unknown collections

Notes:
- Only fields the engine reads or writes are declared; everything else rides
  along as extra data.
- Joins against these records must tolerate dangling IDs.
"""
from datetime import datetime
import secrets
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel

Number = Union[int, float]

USER_ROLES = ("student", "driver", "supervisor", "movement-manager", "admin")
BUS_STATUSES = ("active", "maintenance", "retired")
TRIP_STATUSES = ("scheduled", "active", "completed", "cancelled")
BOOKING_STATUSES = ("pending", "confirmed", "active", "cancelled", "completed")
PAYMENT_STATUSES = ("pending", "completed", "failed")
ATTENDANCE_STATUSES = ("present", "absent")
MAINTENANCE_STATUSES = ("open", "scheduled", "in_progress", "completed", "cancelled")
MAINTENANCE_PRIORITIES = ("low", "medium", "high", "critical")


def new_id(prefix: str, now: datetime) -> str:
    return f"{prefix}-{int(now.timestamp() * 1000)}-{secrets.token_hex(5)[:9]}"


def stamp(now: datetime) -> str:
    return now.isoformat(timespec="seconds")


class Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    id: str
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def new(cls, prefix: str, now: datetime, **fields):
        """A fresh record stamped from `now`; its non-null defaults are stored explicitly."""
        values = {
            name: info.get_default(call_default_factory=True)
            for name, info in cls.model_fields.items()
            if not info.is_required()
        }
        values.update(fields)
        values.update(id=new_id(prefix, now), created_at=stamp(now), updated_at=stamp(now))
        return cls(**{k: v for k, v in values.items() if v is not None})

    def touch(self, now: datetime) -> None:
        self.updated_at = stamp(now)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)

    def pick(self, *fields: str) -> dict:
        """A camelCase summary with `id` plus the named fields."""
        data = {"id": self.id}
        for f in fields:
            data[to_camel(f)] = getattr(self, f, None)
        return data


# ---------------- Users ---------------- #

class UserBase(Record):
    role: str
    name: str | None = None
    email: str | None = None
    phone: str | None = None


class Student(UserBase):
    role: Literal["student"] = "student"
    student_id: str | None = None
    department: str | None = None
    year: str | None = None
    subscription_status: str | None = None
    subscription_expiry: str | None = None
    assigned_bus_id: str | None = None
    avatar: str | None = None


class Driver(UserBase):
    role: Literal["driver"] = "driver"
    license_number: str | None = None
    experience: str | None = None
    assigned_bus_id: str | None = None
    current_route_id: str | None = None


class Supervisor(UserBase):
    role: Literal["supervisor"] = "supervisor"
    assigned_bus_id: str | None = None
    assigned_route_id: str | None = None


class MovementManager(UserBase):
    role: Literal["movement-manager"] = "movement-manager"
    permissions: list[str] | None = None


class Admin(UserBase):
    role: Literal["admin"] = "admin"
    permissions: list[str] | None = None


class OtherUser(UserBase):
    """Any role this engine does not model; kept verbatim."""


def _user_tag(value) -> str:
    role = value.get("role") if isinstance(value, dict) else getattr(value, "role", None)
    return role if role in USER_ROLES else "other"


User = Annotated[
    Union[
        Annotated[Student, Tag("student")],
        Annotated[Driver, Tag("driver")],
        Annotated[Supervisor, Tag("supervisor")],
        Annotated[MovementManager, Tag("movement-manager")],
        Annotated[Admin, Tag("admin")],
        Annotated[OtherUser, Tag("other")],
    ],
    Discriminator(_user_tag),
]


# ---------------- Fleet ---------------- #

class Bus(Record):
    number: str | None = None
    model: str | None = None
    bus_type: str | None = Field(None, alias="type")
    capacity: int | None = None
    status: str | None = "active"
    assigned_students: list[str] = Field(default_factory=list)
    assigned_supervisor_id: str | None = None
    last_maintenance: str | None = None
    next_maintenance: str | None = None
    maintenance_interval: Number | None = None


class Maintenance(Record):
    bus_id: str | None = None
    type: str | None = "preventive"
    status: str | None = "scheduled"
    priority: str | None = "medium"
    scheduled_date: str | None = None
    completed_date: str | None = None
    actual_cost: Number | None = None
    estimated_cost: Number | None = None
    description: str | None = None
    date: str | None = None


class Route(Record):
    name: str | None = None
    start_point: str | None = None
    end_point: str | None = None
    distance: Number | None = None
    estimated_duration: Number | str | None = None
    status: str | None = None


class Trip(Record):
    route_id: str | None = None
    bus_id: str | None = None
    driver_id: str | None = None
    supervisor_id: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    status: str | None = "scheduled"
    passengers: int | None = 0
    operational_cost: Number | None = None


# ---------------- Riders ---------------- #

class Booking(Record):
    student_id: str | None = None
    trip_id: str | None = None
    status: str | None = "pending"
    date: str | None = None


class Payment(Record):
    student_id: str | None = None
    trip_id: str | None = None
    booking_id: str | None = None
    amount: Number | None = None
    method: str | None = None
    status: str | None = "pending"
    date: str | None = None


class Attendance(Record):
    student_id: str | None = None
    trip_id: str | None = None
    status: str | None = None
    timestamp: str | None = None
    notes: str | None = ""


# ---------------- Messaging ---------------- #

class Notification(Record):
    user_id: str | None = None
    sender_id: str | None = None
    title: str | None = None
    message: str | None = None
    type: str | None = None
    priority: str | None = None
    status: str | None = "unread"
    bus_id: str | None = None
    route_id: str | None = None
    trip_id: str | None = None


class Announcement(Record):
    title: str | None = None
    message: str | None = None
    type: str | None = None
    priority: str | None = None
    target_roles: list[str] = Field(default_factory=list)
    created_by: str | None = None


# ---------------- Snapshot ---------------- #

class Snapshot(BaseModel):
    """The complete dataset at one point in time."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    users: list[User] = Field(default_factory=list)
    buses: list[Bus] = Field(default_factory=list)
    routes: list[Route] = Field(default_factory=list)
    trips: list[Trip] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)
    attendance: list[Attendance] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    announcements: list[Announcement] = Field(default_factory=list)
    maintenance: list[Maintenance] = Field(default_factory=list)

    @staticmethod
    def find(items: list, record_id: str | None):
        if record_id is None:
            return None
        for item in items:
            if item.id == record_id:
                return item
        return None

    def user(self, user_id: str | None):
        return self.find(self.users, user_id)

    def student(self, user_id: str | None) -> Student | None:
        user = self.user(user_id)
        return user if isinstance(user, Student) else None

    def bus(self, bus_id: str | None) -> Bus | None:
        return self.find(self.buses, bus_id)

    def route(self, route_id: str | None) -> Route | None:
        return self.find(self.routes, route_id)

    def trip(self, trip_id: str | None) -> Trip | None:
        return self.find(self.trips, trip_id)

    def payment(self, payment_id: str | None) -> Payment | None:
        return self.find(self.payments, payment_id)

    def booking(self, booking_id: str | None) -> Booking | None:
        return self.find(self.bookings, booking_id)

    def maintenance_record(self, record_id: str | None) -> Maintenance | None:
        return self.find(self.maintenance, record_id)

    def to_document(self) -> dict:
        """Records write back only the fields they were loaded with or assigned since."""
        document = self.model_dump(by_alias=True, mode="json", exclude_unset=True)
        for name in type(self).model_fields:
            if name not in document:
                document[name] = [
                    record.model_dump(by_alias=True, mode="json", exclude_unset=True)
                    for record in getattr(self, name)
                ]
        return document
