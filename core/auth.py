import logging
from fastapi import Depends, Header, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from typing import Optional
from config.settings import settings
from core.errors import Forbidden
from models.schemas import Caller

logger = logging.getLogger(__name__)

# Define security scheme for Swagger UI (auto_error=False allows us to handle missing tokens gracefully)
security = HTTPBearer(auto_error=False)

STAFF_ROLES = ("admin", "movement-manager")


def _extract_token(header_val: str) -> Optional[str]:
    """Helper to strip 'Bearer ' prefix if present."""
    if not header_val:
        return None
    hv = header_val.strip()
    if hv.lower().startswith("bearer "):
        return hv.split(None, 1)[1].strip()
    return hv  # accept raw token


def decode_token(token: str) -> Caller:
    """Verify an HS256 token and map its `sub`/`role` claims to a Caller."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.warning("Token expired")
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Token decode error: %s", e)
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id, role = payload.get("sub"), payload.get("role")
    if not user_id or not role:
        logger.warning("Token missing sub/role claims")
        raise HTTPException(status_code=401, detail="Invalid token")
    return Caller(user_id=str(user_id), role=str(role))


async def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
    authorization: Optional[str] = Header(None),
) -> Caller:
    """
    Async JWT auth dependency.

    Token sources, in order: the bearer scheme, a raw Authorization header,
    then the `token` query parameter.
    """
    token_value = None

    # 1. HTTPBearer (standard Swagger/FastAPI way)
    if creds and creds.credentials:
        token_value = creds.credentials

    # 2. Authorization header without the Bearer prefix
    if not token_value and authorization:
        token_value = _extract_token(authorization)

    # 3. Query param fallback
    if not token_value:
        token_value = request.query_params.get("token")

    if not token_value:
        logger.warning("Authentication failed: no token on %s", request.url.path)
        raise HTTPException(status_code=401, detail="Missing Authorization token")

    return decode_token(token_value)


def require_roles(*roles: str):
    """Dependency factory: the caller must hold one of `roles`."""
    async def dependency(user: Caller = Depends(get_current_user)) -> Caller:
        if user.role not in roles:
            logger.warning("Role %s refused (needs one of %s)", user.role, ", ".join(roles))
            raise Forbidden("Insufficient role")
        return user
    return dependency


def ensure_self_or_staff(user: Caller, user_id: str) -> None:
    """Raise Forbidden unless the caller is `user_id` or admin/movement-manager."""
    if user.user_id != user_id and user.role not in STAFF_ROLES:
        raise Forbidden("Not allowed to act for another user")
