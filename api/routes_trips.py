# api/routes_trips.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import Caller, TripCreate, TripUpdate

router = APIRouter()

staff = require_roles("admin", "movement-manager")


@router.get("")
async def list_trips(
    status: Optional[str] = None,
    date: Optional[str] = None,
    route_id: Optional[str] = Query(None, alias="routeId"),
    driver_id: Optional[str] = Query(None, alias="driverId"),
    bus_id: Optional[str] = Query(None, alias="busId"),
    supervisor_id: Optional[str] = Query(None, alias="supervisorId"),
    search: Optional[str] = None,
    user: Caller = Depends(staff),
    reg: Registry = Depends(get_registry),
):
    """Enriched trips (newest first) plus a summary over the filtered set."""
    result = await reg.trips.list_trips(
        status=status, date=date, route_id=route_id, driver_id=driver_id,
        bus_id=bus_id, supervisor_id=supervisor_id, search=search,
    )
    return ok(result)


@router.post("")
async def create_trip(req: TripCreate, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.trips.create_trip(req.to_fields()))


@router.get("/report")
async def performance_report(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: Caller = Depends(staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.trips.performance_report(start_date, end_date))


@router.get("/{trip_id}")
async def get_trip(trip_id: str, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.trips.get_trip(trip_id))


@router.patch("/{trip_id}")
async def update_trip(
    trip_id: str,
    req: TripUpdate,
    user: Caller = Depends(staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.trips.update_trip(trip_id, req.to_fields()))


@router.post("/{trip_id}/cancel")
async def cancel_trip(trip_id: str, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.trips.cancel_trip(trip_id))
