# api/routes_user.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import ensure_self_or_staff, get_current_user
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import Caller, NotificationUpdate, PaymentCreate, ProfileUpdate

router = APIRouter()


# ------------- PROFILE -------------
@router.get("/profile")
async def profile(user: Caller = Depends(get_current_user), reg: Registry = Depends(get_registry)):
    return ok(await reg.users.get_profile(user.user_id))


@router.patch("/profile")
async def update_profile(
    req: ProfileUpdate,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    """Update the caller's contact fields; role, roster and subscription stay engine-managed."""
    return ok(await reg.users.update_profile(user.user_id, req.to_fields()))


@router.get("/supervisors/{supervisor_id}")
async def supervisor(
    supervisor_id: str,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.users.get_supervisor(supervisor_id))


# ------------- PAYMENTS -------------
@router.post("/payments")
async def create_payment(
    req: PaymentCreate,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    """
    Record a payment. Students pay for themselves; admin/movement-manager may
    record one for any student. Cash stays pending until a supervisor settles it.
    """
    student_id = req.student_id or user.user_id
    ensure_self_or_staff(user, student_id)
    payment = await reg.payments.create_payment(
        student_id, req.trip_id, req.amount, req.method, booking_id=req.booking_id, date=req.date
    )
    return ok(payment)


# ------------- NOTIFICATIONS -------------
@router.get("/notifications")
async def notifications(
    status: Optional[str] = None,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.notifications.inbox(user.user_id, status))


@router.patch("/notifications/{notification_id}")
async def update_notification(
    notification_id: str,
    req: NotificationUpdate,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    result = await reg.notifications.set_status(
        user.user_id, notification_id, req.status, is_admin=user.role == "admin"
    )
    return ok(result)


# ------------- ANNOUNCEMENTS -------------
@router.get("/announcements")
async def announcements(
    type: Optional[str] = None,
    priority: Optional[str] = None,
    target_role: Optional[str] = Query(None, alias="targetRole"),
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.notifications.list_announcements(type, priority, target_role))


@router.get("/announcements/{announcement_id}")
async def announcement(
    announcement_id: str,
    user: Caller = Depends(get_current_user),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.notifications.get_announcement(announcement_id))
