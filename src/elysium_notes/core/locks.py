"""Per-note upload serialization.

Two uploads for the same note id would race at the ledger anchor step (both
would try to initialize the same record slot). NoteLockRegistry hands out one
asyncio.Lock per note id so callers can serialize them.

Design:
    - Locks are created lazily and dropped once no one holds or waits on them
    - Different note ids never block each other
    - Single event loop only (no thread safety)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class NoteLockRegistry:
    """Registry of per-note asyncio locks.

    Example:
        >>> locks = NoteLockRegistry()
        >>> async with locks.hold(42):
        ...     await upload_and_anchor(42)
    """

    def __init__(self) -> None:
        self._locks: Dict[int, asyncio.Lock] = {}
        self._waiters: Dict[int, int] = {}

    def is_locked(self, note_id: int) -> bool:
        lock = self._locks.get(note_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, note_id: int) -> AsyncIterator[None]:
        """Hold the lock for ``note_id`` for the duration of the block."""
        lock = self._locks.setdefault(note_id, asyncio.Lock())
        self._waiters[note_id] = self._waiters.get(note_id, 0) + 1
        if lock.locked():
            logger.debug(f"Note {note_id} is busy, waiting for the in-flight upload")
        try:
            async with lock:
                yield
        finally:
            self._waiters[note_id] -= 1
            if self._waiters[note_id] == 0:
                del self._waiters[note_id]
                self._locks.pop(note_id, None)
