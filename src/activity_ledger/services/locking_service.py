"""Per-key serialization of read-validate-write units of work."""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from activity_ledger.database import acquire_advisory_xact_lock, is_postgresql
from activity_ledger.errors import OperationTimeoutError

logger = logging.getLogger(__name__)


def lock_key(scope: str, entity_id: UUID | str) -> str:
    """Lock key for one row set, e.g. ``worker:<id>``."""
    return f"{scope}:{entity_id}"


class LockRegistry:
    """In-process locks keyed by string.

    One registry is shared by every request served by the same process; the
    PostgreSQL advisory locks taken alongside extend the guarantee across
    processes.
    """

    def __init__(self) -> None:
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def get(self, key: str) -> asyncio.Lock:
        return self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class LockingService:
    """Service for running a check-then-write as one serialized unit.

    ``serialized`` holds the locks for every given key, lets the caller
    re-validate and write through the session, then commits before releasing.
    Two callers sharing a key therefore see each other's committed writes:

    1. In-process asyncio locks, acquired in sorted key order
    2. Transaction-scoped advisory locks on PostgreSQL
    3. Commit on success, rollback on any exception

    Waiting for a lock is bounded by ``timeout`` seconds.
    """

    def __init__(self, session: AsyncSession, registry: LockRegistry, timeout: float = 10.0):
        self.session = session
        self.registry = registry
        self.timeout = timeout

    @asynccontextmanager
    async def serialized(self, *keys: str) -> AsyncIterator[None]:
        """Hold locks for ``keys`` around a committed unit of work."""
        ordered = tuple(sorted(set(keys)))
        acquired: list[asyncio.Lock] = []
        try:
            for key in ordered:
                lock = self.registry.get(key)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
                except asyncio.TimeoutError as exc:
                    logger.warning("Lock wait timed out for %s", key)
                    raise OperationTimeoutError(ordered, self.timeout) from exc
                acquired.append(lock)

            try:
                if is_postgresql(self.session):
                    for key in ordered:
                        await acquire_advisory_xact_lock(self.session, key, self.timeout)
                yield
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise
        finally:
            for lock in reversed(acquired):
                lock.release()
