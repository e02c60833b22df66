# tabletop_engine/game/utils/mutation_queue.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, Optional

from tabletop_engine.exceptions import CollaboratorError, EngineError

logger = logging.getLogger(__name__)


class ActorMutationQueue:
    """
    Serialises read-modify-write sequences on one actor's effects.

    Each actor ref gets its own asyncio.Lock. The lock is re-entrant for the task
    that holds it, so a stack application may call back into apply_effect for the
    same actor without deadlocking. A lock is dropped once no task holds or
    awaits it.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}
        self._owners: Dict[str, Optional[asyncio.Task]] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def lock_for(self, actor_ref: str) -> asyncio.Lock:
        lock = self._locks.get(actor_ref)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[actor_ref] = lock
        return lock

    def is_held(self, actor_ref: str) -> bool:
        lock = self._locks.get(actor_ref)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, actor_ref: str) -> AsyncIterator[None]:
        task = asyncio.current_task()
        if task is not None and self._owners.get(actor_ref) is task:
            yield
            return
        lock = self.lock_for(actor_ref)
        self._users[actor_ref] = self._users.get(actor_ref, 0) + 1
        try:
            async with lock:
                self._owners[actor_ref] = task
                try:
                    yield
                finally:
                    self._owners.pop(actor_ref, None)
        finally:
            self._users[actor_ref] -= 1
            if self._users[actor_ref] == 0:
                del self._users[actor_ref]
                self._locks.pop(actor_ref, None)


async def store_call(description: str, awaitable: Awaitable[Any]) -> Any:
    """Awaits a document-store operation, wrapping foreign failures as CollaboratorError."""
    try:
        return await awaitable
    except EngineError:
        raise
    except Exception as e:
        logger.error(f"DocumentStore: {description} failed: {e}")
        raise CollaboratorError(f"{description} failed: {e}") from e
