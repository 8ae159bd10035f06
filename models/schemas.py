from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union

Amount = Union[StrictInt, StrictFloat]


class Caller(BaseModel):
    """Authenticated identity resolved from the bearer token."""
    user_id: str
    role: str


class RequestBody(BaseModel):
    """Request bodies accept camelCase (wire) or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_fields(self) -> dict:
        return self.model_dump(exclude_none=True)


class AssignBusRequest(RequestBody):
    bus_id: str = Field(..., min_length=1)
    student_id: Optional[str] = None


class PaymentCreate(RequestBody):
    student_id: Optional[str] = None
    trip_id: str = Field(..., min_length=1)
    amount: Amount
    method: str = Field(..., min_length=1)
    booking_id: Optional[str] = None
    date: Optional[str] = None


class SettlementRequest(RequestBody):
    status: str


class AttendanceSubmit(RequestBody):
    student_id: str = Field(..., min_length=1)
    trip_id: str = Field(..., min_length=1)
    status: str
    timestamp: Optional[str] = None
    notes: Optional[str] = None


class BroadcastRequest(RequestBody):
    message: str
    bus_id: Optional[str] = None


class BookingCreate(RequestBody):
    trip_id: str = Field(..., min_length=1)


class TripCreate(RequestBody):
    route_id: str
    bus_id: str
    driver_id: str
    supervisor_id: Optional[str] = None
    date: str
    start_time: str
    end_time: str
    operational_cost: Optional[Amount] = None


class TripUpdate(RequestBody):
    route_id: Optional[str] = None
    bus_id: Optional[str] = None
    driver_id: Optional[str] = None
    supervisor_id: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    status: Optional[str] = None
    passengers: Optional[StrictInt] = None
    operational_cost: Optional[Amount] = None


class BusCreate(RequestBody):
    number: str = Field(..., min_length=1)
    model: Optional[str] = None
    bus_type: Optional[str] = Field(None, alias="type")
    capacity: StrictInt
    status: str = "active"
    assigned_supervisor_id: Optional[str] = None
    last_maintenance: Optional[str] = None
    next_maintenance: Optional[str] = None
    maintenance_interval: Optional[Amount] = None


class BusUpdate(RequestBody):
    number: Optional[str] = None
    model: Optional[str] = None
    bus_type: Optional[str] = Field(None, alias="type")
    capacity: Optional[StrictInt] = None
    status: Optional[str] = None
    assigned_supervisor_id: Optional[str] = None
    last_maintenance: Optional[str] = None
    next_maintenance: Optional[str] = None
    maintenance_interval: Optional[Amount] = None


class RouteCreate(RequestBody):
    name: str = Field(..., min_length=1)
    start_point: str = Field(..., min_length=1)
    end_point: str = Field(..., min_length=1)
    distance: Optional[Amount] = None
    estimated_duration: Optional[Union[StrictInt, StrictFloat, str]] = None
    status: Optional[str] = "active"


class AnnouncementCreate(RequestBody):
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: Optional[str] = "general"
    priority: Optional[str] = "medium"
    target_roles: List[str] = Field(default_factory=list)


class AnnouncementUpdate(RequestBody):
    title: Optional[str] = None
    message: Optional[str] = None
    type: Optional[str] = None
    priority: Optional[str] = None
    target_roles: Optional[List[str]] = None


class ProfileUpdate(RequestBody):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    year: Optional[str] = None
    avatar: Optional[str] = None


class NotificationUpdate(RequestBody):
    status: str


class MaintenanceCreate(RequestBody):
    bus_id: str = Field(..., min_length=1)
    type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    scheduled_date: Optional[str] = None
    completed_date: Optional[str] = None
    actual_cost: Optional[Amount] = None
    estimated_cost: Optional[Amount] = None
    description: Optional[str] = None


class MaintenanceUpdate(RequestBody):
    type: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    scheduled_date: Optional[str] = None
    completed_date: Optional[str] = None
    actual_cost: Optional[Amount] = None
    estimated_cost: Optional[Amount] = None
    description: Optional[str] = None
