# api/routes_student.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import ensure_self_or_staff, require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import AssignBusRequest, BookingCreate, Caller

router = APIRouter()

student_or_staff = require_roles("student", "admin", "movement-manager")


def _target(user: Caller, student_id: Optional[str]) -> str:
    target = student_id or user.user_id
    ensure_self_or_staff(user, target)
    return target


@router.post("/assign-bus")
async def assign_bus(
    req: AssignBusRequest,
    user: Caller = Depends(student_or_staff),
    reg: Registry = Depends(get_registry),
):
    """Put the student on a bus roster (requires a completed payment and a free seat)."""
    result = await reg.assignments.assign_student_to_bus(_target(user, req.student_id), req.bus_id)
    return ok(result)


@router.get("/bookings")
async def bookings(
    student_id: Optional[str] = Query(None, alias="studentId"),
    user: Caller = Depends(student_or_staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.bookings.student_bookings(_target(user, student_id)))


@router.post("/bookings")
async def create_booking(
    req: BookingCreate,
    user: Caller = Depends(require_roles("student")),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.bookings.create_booking(user.user_id, req.trip_id))


@router.post("/bookings/{booking_id}/cancel")
async def cancel_booking(
    booking_id: str,
    user: Caller = Depends(require_roles("student")),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.bookings.cancel_booking(user.user_id, booking_id))


@router.get("/reservations")
async def reservations(
    student_id: Optional[str] = Query(None, alias="studentId"),
    user: Caller = Depends(student_or_staff),
    reg: Registry = Depends(get_registry),
):
    """Bookings still in play: pending, confirmed or active."""
    return ok(await reg.bookings.reservations(_target(user, student_id)))


@router.get("/payments")
async def payments(
    student_id: Optional[str] = Query(None, alias="studentId"),
    user: Caller = Depends(student_or_staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.payments.student_payments(_target(user, student_id)))


@router.get("/stats")
async def stats(
    student_id: Optional[str] = Query(None, alias="studentId"),
    user: Caller = Depends(student_or_staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.bookings.statistics(_target(user, student_id)))
