"""
State store adapters.

Purpose:
- Load and persist one Snapshot (the full set of collections) atomically
- Hide the medium (JSON file, SQL row, process memory) behind load()/save()

Contract:
- load() -> Snapshot; raises StoreUnavailable if the medium is unreadable or
  the content is malformed. A medium that does not exist yet is an empty
  snapshot; malformed content is never treated as empty.
- save(Snapshot) -> None; raises StoreUnavailable on write failure.
"""
import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from core.db import create_engine, create_schema, session_factory
from core.errors import StoreUnavailable
from models.db_models import StateDocument
from models.records import Snapshot

logger = logging.getLogger(__name__)


def parse_document(document, source: str) -> Snapshot:
    """Validate a raw collections mapping into a Snapshot."""
    if not isinstance(document, dict):
        raise StoreUnavailable(f"{source}: top-level document must be an object")
    try:
        return Snapshot.model_validate(document)
    except ValidationError as e:
        logger.error("Malformed state document in %s: %s", source, e)
        raise StoreUnavailable(f"{source}: malformed records ({e.error_count()} errors)") from e


class StateStore:
    """Whole-snapshot persistence contract."""

    async def load(self) -> Snapshot:
        raise NotImplementedError

    async def save(self, snapshot: Snapshot) -> None:
        raise NotImplementedError


class MemoryStateStore(StateStore):
    """Process-local store; every load hands out an independent copy."""

    def __init__(self, document: dict | None = None):
        self._document = copy.deepcopy(document or {})
        self.saves = 0

    @property
    def document(self) -> dict:
        return copy.deepcopy(self._document)

    async def load(self) -> Snapshot:
        return parse_document(copy.deepcopy(self._document), "memory")

    async def save(self, snapshot: Snapshot) -> None:
        self._document = snapshot.to_document()
        self.saves += 1


class JsonFileStateStore(StateStore):
    """One JSON document on disk, replaced atomically on every save."""

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    async def load(self) -> Snapshot:
        return await asyncio.to_thread(self._read)

    async def save(self, snapshot: Snapshot) -> None:
        await asyncio.to_thread(self._write, snapshot.to_document())

    def _read(self) -> Snapshot:
        if not self.path.exists():
            logger.info("State file %s does not exist yet; starting empty", self.path)
            return Snapshot()
        try:
            text = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read %s: %s", self.path, e)
            raise StoreUnavailable(f"cannot read {self.path}") from e
        except UnicodeDecodeError as e:
            logger.error("State file %s is not valid UTF-8: %s", self.path, e)
            raise StoreUnavailable(f"{self.path} is not valid UTF-8") from e
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("State file %s is not valid JSON: %s", self.path, e)
            raise StoreUnavailable(f"{self.path} is not valid JSON") from e
        return parse_document(document, str(self.path))

    def _write(self, document: dict) -> None:
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write %s: %s", self.path, e)
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreUnavailable(f"cannot write {self.path}") from e


class SqlStateStore(StateStore):
    """One JSON row per dataset in a SQLAlchemy table."""

    def __init__(self, engine: AsyncEngine, dataset: str = "default"):
        self.engine = engine
        self.dataset = dataset
        self._sessions = session_factory(engine)
        self._schema_ready = False

    async def _ensure_schema(self) -> None:
        if not self._schema_ready:
            await create_schema(self.engine)
            self._schema_ready = True

    async def load(self) -> Snapshot:
        try:
            await self._ensure_schema()
            async with self._sessions() as session:
                result = await session.execute(
                    select(StateDocument).where(StateDocument.dataset == self.dataset)
                )
                row = result.scalar_one_or_none()
                document = row.document if row else None
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to load dataset %s: %s", self.dataset, e)
            raise StoreUnavailable(f"cannot load dataset {self.dataset}") from e
        if document is None:
            return Snapshot()
        return parse_document(document, f"sql:{self.dataset}")

    async def save(self, snapshot: Snapshot) -> None:
        document = snapshot.to_document()
        try:
            await self._ensure_schema()
            async with self._sessions() as session:
                async with session.begin():
                    result = await session.execute(
                        select(StateDocument)
                        .where(StateDocument.dataset == self.dataset)
                        .with_for_update()  # lock row
                    )
                    row = result.scalar_one_or_none()
                    if row is None:
                        session.add(StateDocument(dataset=self.dataset, document=document, version=1))
                    else:
                        row.document = document
                        row.version = (row.version or 0) + 1
        except (SQLAlchemyError, OSError) as e:
            logger.error("Failed to save dataset %s: %s", self.dataset, e)
            raise StoreUnavailable(f"cannot save dataset {self.dataset}") from e


def build_state_store(settings: Settings) -> StateStore:
    """Pick the backend named by settings.STATE_BACKEND."""
    backend = settings.STATE_BACKEND.lower()
    if backend == "json":
        return JsonFileStateStore(settings.STATE_FILE)
    if backend == "sql":
        return SqlStateStore(create_engine(settings.DATABASE_URL))
    if backend == "memory":
        logger.warning("STATE_BACKEND=memory: data will be lost on restart")
        return MemoryStateStore()
    raise ValueError(f"unknown STATE_BACKEND {settings.STATE_BACKEND!r}")
