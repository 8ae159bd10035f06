"""User profiles."""
import logging

from core.errors import InvalidRequest, NotFound
from models.records import Supervisor
from services.engine import DataEngine

logger = logging.getLogger(__name__)

# role, roster and subscription fields are managed by the engine, not the user
PROFILE_FIELDS = ("name", "email", "phone", "department", "year", "avatar")


class UserService:
    def __init__(self, engine: DataEngine):
        self.engine = engine

    async def get_profile(self, user_id: str):
        snapshot = await self.engine.read()
        user = snapshot.user(user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    async def update_profile(self, user_id: str, data: dict):
        changes = {k: v for k, v in data.items() if k in PROFILE_FIELDS and v is not None}
        if "email" in changes and "@" not in changes["email"]:
            raise InvalidRequest("email is not valid")
        async with self.engine.transaction() as snapshot:
            user = snapshot.user(user_id)
            if user is None:
                raise NotFound("User not found")
            for key, value in changes.items():
                setattr(user, key, value)
            user.touch(self.engine.now())
            logger.info("Profile %s updated: %s", user_id, ", ".join(sorted(changes)) or "no changes")
            return user

    async def get_supervisor(self, supervisor_id: str) -> Supervisor:
        snapshot = await self.engine.read()
        user = snapshot.user(supervisor_id)
        if not isinstance(user, Supervisor):
            raise NotFound("Supervisor not found")
        return user
