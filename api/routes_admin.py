from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import (
    AnnouncementCreate,
    AnnouncementUpdate,
    AttendanceSubmit,
    Caller,
    MaintenanceCreate,
    MaintenanceUpdate,
)

router = APIRouter()

require_admin = require_roles("admin")


@router.delete("/buses/{bus_id}")
async def delete_bus(bus_id: str, user: Caller = Depends(require_admin), reg: Registry = Depends(get_registry)):
    """Admin: remove a bus record (no cascade)."""
    await reg.fleet.delete_bus(bus_id)
    return ok({"deleted": bus_id})


# ------------- PAYMENTS -------------
@router.get("/payments")
async def payments(
    student_id: Optional[str] = Query(None, alias="studentId"),
    status: Optional[str] = None,
    method: Optional[str] = None,
    trip_id: Optional[str] = Query(None, alias="tripId"),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    result = await reg.payments.list_payments(
        student_id=student_id, status=status, method=method,
        trip_id=trip_id, date_from=date_from, date_to=date_to,
    )
    return ok(result)


@router.get("/payments/{payment_id}")
async def get_payment(payment_id: str, user: Caller = Depends(require_admin), reg: Registry = Depends(get_registry)):
    return ok(await reg.payments.get_payment(payment_id))


@router.delete("/payments/{payment_id}")
async def delete_payment(payment_id: str, user: Caller = Depends(require_admin), reg: Registry = Depends(get_registry)):
    await reg.payments.delete_payment(payment_id)
    return ok({"deleted": payment_id})


# ------------- ATTENDANCE -------------
@router.post("/attendance")
async def record_attendance(
    req: AttendanceSubmit,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    """Admin: record attendance on any trip."""
    record = await reg.attendance.submit(None, req.student_id, req.trip_id, req.status, req.timestamp, req.notes)
    return ok(record)


# ------------- MESSAGING -------------
@router.post("/announcements")
async def create_announcement(
    req: AnnouncementCreate,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.notifications.create_announcement(user.user_id, req.to_fields()))


@router.patch("/announcements/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    req: AnnouncementUpdate,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.notifications.update_announcement(announcement_id, req.to_fields()))


@router.delete("/announcements/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    await reg.notifications.delete_announcement(announcement_id)
    return ok({"deleted": announcement_id})


@router.delete("/notifications/{notification_id}")
async def delete_notification(
    notification_id: str,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    await reg.notifications.delete(notification_id)
    return ok({"deleted": notification_id})


# ------------- MAINTENANCE -------------
@router.get("/maintenance-schedule")
async def maintenance_schedule(
    bus_id: Optional[str] = Query(None, alias="busId"),
    type: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    """Admin: per-bus maintenance schedule, most urgent first."""
    result = await reg.fleet.maintenance_schedule(
        bus_id=bus_id, record_type=type, status=status, date_from=date_from, date_to=date_to,
    )
    return ok(result)


@router.post("/maintenance")
async def create_maintenance(
    req: MaintenanceCreate,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.fleet.create_maintenance(req.to_fields()))


@router.patch("/maintenance/{record_id}")
async def update_maintenance(
    record_id: str,
    req: MaintenanceUpdate,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.fleet.update_maintenance(record_id, req.to_fields()))


@router.delete("/maintenance/{record_id}")
async def delete_maintenance(
    record_id: str,
    user: Caller = Depends(require_admin),
    reg: Registry = Depends(get_registry),
):
    await reg.fleet.delete_maintenance(record_id)
    return ok({"deleted": record_id})
