"""Advisory in-process locks keyed by backing-file path.

The map is owned by a single store instance and only protects writers
running on the same event loop. Two processes writing the same file are
not coordinated.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from devpilot.errors import LockTimeout

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 0.05


@dataclass
class LockToken:
    """Proof of holding the lock for one path."""

    path: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    acquired_at: float = 0.0
    owner: str | None = None


class FileLockMap:
    """Maps a file path to the token currently holding it.

    ``acquire_lock`` polls until the path is free. A holder that keeps the
    lock longer than *timeout* seconds is assumed dead: its lock is
    force-released, logged, and handed to the waiter.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._clock = clock
        self._locks: dict[str, LockToken] = {}
        self.reclaimed = 0

    @staticmethod
    def _key(path: str | Path) -> str:
        return str(path)

    def is_locked(self, path: str | Path) -> bool:
        return self._key(path) in self._locks

    def holder(self, path: str | Path) -> LockToken | None:
        return self._locks.get(self._key(path))

    async def acquire_lock(self, path: str | Path, owner: str | None = None) -> LockToken:
        """Wait until *path* is free, then take it."""
        key = self._key(path)
        while True:
            current = self._locks.get(key)
            now = self._clock()
            if current is None:
                token = LockToken(path=key, acquired_at=now, owner=owner)
                self._locks[key] = token
                return token

            held_for = now - current.acquired_at
            if held_for >= self.timeout:
                err = LockTimeout(key, held_for, current.owner)
                logger.warning("Recovered deadlock: %s", err)
                self.reclaimed += 1
                del self._locks[key]
                continue

            await asyncio.sleep(self.poll_interval)

    def release_lock(self, token: LockToken) -> bool:
        """Release *token*'s lock. Returns False if it no longer holds it."""
        current = self._locks.get(token.path)
        if current is None or current.token != token.token:
            logger.debug("Lock on %s was not held by token %s", token.path, token.token[:8])
            return False
        del self._locks[token.path]
        return True

    @asynccontextmanager
    async def lock(self, path: str | Path, owner: str | None = None) -> AsyncIterator[LockToken]:
        token = await self.acquire_lock(path, owner=owner)
        try:
            yield token
        finally:
            self.release_lock(token)
