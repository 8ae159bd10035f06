"""
Typed failures raised by the engine and its services.

Every error carries a stable `code` (used in the error envelope) and the HTTP
status the API layer answers with. Services raise these; FastAPI handlers in
core.exception_handlers translate them.
"""


class EngineError(Exception):
    code = "engine_error"
    status_code = 500

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class NotFound(EngineError):
    code = "not_found"
    status_code = 404


class InvalidRequest(EngineError):
    code = "invalid_request"
    status_code = 400


class Forbidden(EngineError):
    code = "forbidden"
    status_code = 403


class Conflict(EngineError):
    """Well-formed request that violates a current-state invariant."""
    code = "conflict"
    status_code = 409


class AlreadyAssigned(Conflict):
    code = "already_assigned"


class Full(Conflict):
    code = "bus_full"


class InvalidTransition(Conflict):
    code = "invalid_transition"


class AlreadyBooked(Conflict):
    code = "already_booked"


class SubscriptionInactive(Conflict):
    code = "subscription_inactive"
    status_code = 403


class StoreUnavailable(EngineError):
    """Persistence medium failure; fatal for the current operation."""
    code = "store_unavailable"
    status_code = 503
