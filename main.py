"""
Main FastAPI application (entrypoint).

Responsibilities:
- Wire API routers (student/supervisor/driver/trips/manager/admin/user)
- Register centralized exception handlers
- Provide middleware: request-id logging
- Add health / readiness endpoints
Notes:
- The state backend (json file, SQL row or memory) comes from settings.STATE_BACKEND.
"""
import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api import (
    routes_admin,
    routes_driver,
    routes_manager,
    routes_student,
    routes_supervisor,
    routes_trips,
    routes_user,
)
from config.settings import settings
from core.exception_handlers import register_exception_handlers
from core.logging import configure_logging, request_logging_middleware
from core.response import ok
from core.singleton import Registry, get_registry

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.API_TITLE, version=settings.API_VERSION)

# CORS - adjust origins for production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(routes_user.router, prefix="", tags=["user"])
app.include_router(routes_student.router, prefix="/student", tags=["student"])
app.include_router(routes_supervisor.router, prefix="/supervisor", tags=["supervisor"])
app.include_router(routes_driver.router, prefix="/driver", tags=["driver"])
app.include_router(routes_trips.router, prefix="/trips", tags=["trips"])
app.include_router(routes_manager.router, prefix="/manager", tags=["manager"])
app.include_router(routes_admin.router, prefix="/admin", tags=["admin"])

register_exception_handlers(app)

# Add request logging middleware (adds X-Request-ID header and logs)
app.middleware("http")(request_logging_middleware)


@app.get("/health")
async def health():
    """Simple health endpoint used by load balancers and orchestrators."""
    return ok({"status": "ok"})


@app.get("/ready")
async def ready(reg: Registry = Depends(get_registry)):
    """Readiness: the state store must load (StoreUnavailable maps to 503)."""
    snapshot = await reg.store.load()
    return ok({"ready": True, "trips": len(snapshot.trips)})


@app.on_event("startup")
async def on_startup():
    logger.info("%s %s starting with STATE_BACKEND=%s", settings.API_TITLE, settings.API_VERSION,
                settings.STATE_BACKEND)


if __name__ == "__main__":
    # Run with: python main.py for local dev. For production use uvicorn/gunicorn with one worker per store.
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
