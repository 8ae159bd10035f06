"""Response envelopes shared by every router and exception handler."""
from pydantic import BaseModel

from core.errors import EngineError


def dump(value):
    """Turn records (or lists of them) into camelCase JSON-ready dicts."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json", exclude_none=True)
    if isinstance(value, list):
        return [dump(v) for v in value]
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    return value


def ok(data=None):
    """Standard success envelope."""
    return {"ok": True, "data": dump(data), "error": None}


def error(code: str = "internal_error", message: str = "An internal error occurred"):
    """Standard error envelope."""
    return {"ok": False, "data": None, "error": {"code": code, "message": message}}


def engine_error(exc: EngineError):
    return error(code=exc.code, message=exc.message)
