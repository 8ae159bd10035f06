"""
Operational data engine: the single writer lock around the state store.

Every write runs load -> lifecycle -> validate -> mutate -> persist inside one
critical section (`transaction()`). Reads (`read()`) take one consistent load
without the lock; when the lifecycle pass would change trips, it is re-run
under the lock against a fresh load and persisted before the read proceeds.
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
import logging
from typing import AsyncIterator, Callable

from models.records import Snapshot
from services.state_store import StateStore
from services.trip_lifecycle import advance_trips

logger = logging.getLogger(__name__)


class DataEngine:
    def __init__(self, store: StateStore, clock: Callable[[], datetime] = datetime.now):
        self.store = store
        self.clock = clock
        self._lock = asyncio.Lock()

    def now(self) -> datetime:
        return self.clock()

    async def read(self) -> Snapshot:
        """A private, lifecycle-normalized copy of the current snapshot."""
        snapshot = await self.store.load()
        if not advance_trips(snapshot, self.now()):
            return snapshot
        async with self._lock:
            snapshot = await self.store.load()
            changed = advance_trips(snapshot, self.now())
            if changed:
                await self.store.save(snapshot)
                logger.info("Lifecycle pass persisted %d trip transition(s)", len(changed))
        return snapshot

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Snapshot]:
        """
        Exclusive read-modify-write.

        The yielded snapshot is persisted when the block exits normally; any
        exception discards it. Lifecycle transitions found on load are saved
        first, so they survive a failing operation.
        """
        async with self._lock:
            snapshot = await self.store.load()
            changed = advance_trips(snapshot, self.now())
            if changed:
                await self.store.save(snapshot)
                logger.info("Lifecycle pass persisted %d trip transition(s)", len(changed))
            yield snapshot
            await self.store.save(snapshot)
