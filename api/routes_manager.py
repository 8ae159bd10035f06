# api/routes_manager.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.auth import require_roles
from core.response import ok
from core.singleton import Registry, get_registry
from models.schemas import BusCreate, BusUpdate, Caller, RouteCreate

router = APIRouter()

staff = require_roles("admin", "movement-manager")


@router.get("/fleet")
async def fleet(
    status: Optional[str] = None,
    bus_type: Optional[str] = Query(None, alias="type"),
    user: Caller = Depends(staff),
    reg: Registry = Depends(get_registry),
):
    """Per-bus performance and maintenance, highest revenue first, plus a fleet summary."""
    return ok(await reg.fleet.fleet_report(status, bus_type))


@router.get("/analytics")
async def analytics(user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.analytics_overview())


@router.get("/revenue")
async def revenue(user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.monthly_revenue())


@router.get("/route-utilization")
async def route_utilization(user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.route_utilization())


# ------------- BUSES -------------
@router.get("/buses")
async def buses(status: Optional[str] = None, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.list_buses(status))


@router.post("/buses")
async def create_bus(req: BusCreate, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.create_bus(req.to_fields()))


@router.get("/buses/{bus_id}")
async def get_bus(bus_id: str, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.get_bus(bus_id))


@router.patch("/buses/{bus_id}")
async def update_bus(
    bus_id: str,
    req: BusUpdate,
    user: Caller = Depends(staff),
    reg: Registry = Depends(get_registry),
):
    return ok(await reg.fleet.update_bus(bus_id, req.to_fields()))


@router.get("/buses/{bus_id}/roster")
async def roster(bus_id: str, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.assignments.roster(bus_id))


# ------------- ROUTES -------------
@router.get("/routes")
async def routes(user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.list_routes())


@router.post("/routes")
async def create_route(req: RouteCreate, user: Caller = Depends(staff), reg: Registry = Depends(get_registry)):
    return ok(await reg.fleet.create_route(req.to_fields()))
