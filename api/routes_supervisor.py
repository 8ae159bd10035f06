# api/routes_supervisor.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import AttendanceSubmit, BroadcastRequest, Caller, SettlementRequest

router = APIRouter()

supervisor_only = require_roles("supervisor")


@router.get("/trips")
async def trips(
    status: Optional[str] = None,
    date: Optional[str] = None,
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.trips.supervisor_trips(user.user_id, status=status, date=date))


@router.post("/attendance")
async def submit_attendance(
    req: AttendanceSubmit,
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    record = await reg.attendance.submit(
        user.user_id, req.student_id, req.trip_id, req.status, req.timestamp, req.notes
    )
    return ok(record)


@router.get("/attendance")
async def attendance(
    trip_id: Optional[str] = Query(None, alias="tripId"),
    date: Optional[str] = None,
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.attendance.supervisor_attendance(user.user_id, trip_id, date))


@router.get("/payments")
async def payments(user: Caller = Depends(supervisor_only), reg: Registry = Depends(get_registry)):
    return ok(await reg.payments.supervisor_payments(user.user_id))


@router.patch("/payments/{payment_id}")
async def settle_payment(
    payment_id: str,
    req: SettlementRequest,
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    """Settle a pending payment on one of the caller's trips as completed or failed."""
    return ok(await reg.payments.settle_payment(user.user_id, payment_id, req.status))


@router.get("/reports")
async def reports(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.trips.supervisor_report(user.user_id, start_date, end_date))


@router.post("/broadcast")
async def broadcast(
    req: BroadcastRequest,
    user: Caller = Depends(supervisor_only),
    reg: Registry = Depends(get_registry),
):
    """Alert every student booked on the caller's bus (or `busId`)."""
    return ok(await reg.notifications.broadcast(user.user_id, req.message, req.bus_id))
