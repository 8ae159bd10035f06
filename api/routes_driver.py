# api/routes_driver.py
from typing import Optional

from fastapi import APIRouter, Depends

from core.auth import require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import Caller

router = APIRouter()


@router.get("/trips")
async def trips(
    status: Optional[str] = None,
    date: Optional[str] = None,
    user: Caller = Depends(require_roles("driver")),
    reg: Registry = Depends(get_registry),
):
    """Driver: the caller's trips, newest first, with bookings and attendance rolled up."""
    return ok(await reg.trips.driver_trips(user.user_id, status=status, date=date))
