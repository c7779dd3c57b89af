# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Lock manager: at most one exclusive WOPI lock per file.

Each file is either Unlocked or Locked(lock_id, holder). Lock ids are opaque
strings chosen by the editing engine and compared by exact equality.

Transitions for one file id run under a per-file asyncio.Lock, so the
check-then-set of every operation is atomic per key and UNLOCK_AND_RELOCK
never exposes an unlocked state. Different files never contend.

A failed transition never mutates state; it reports the lock currently held
so the caller can diagnose the conflict without a GET_LOCK round trip.

Locks do not expire: a lock lives until UNLOCK or UNLOCK_AND_RELOCK. Each
held lock is mirrored to the documents blob store as ``<file_id>.lock.json``
and read back by load(), so a durable backend keeps locks across restarts.

Example:
    locks = LocksTable(documents)
    result = await locks.lock("doc-1", "L1", holder_id="u1")
    assert result.ok and result.lock_id == "L1"
    result = await locks.lock("doc-1", "L2", holder_id="u2")
    assert not result.ok and result.lock_id == "L1"
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..document.table import DocumentsTable

logger = logging.getLogger(__name__)

_LOCK_SUFFIX = ".lock.json"


@dataclass(frozen=True)
class Lock:
    """A held lock. timestamp is the acquisition/refresh time (epoch seconds)."""

    file_id: str
    lock_id: str
    holder_id: str
    timestamp: float

    def to_dict(self) -> dict:
        return {
            "file_id": self.file_id,
            "lock_id": self.lock_id,
            "holder_id": self.holder_id,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class LockResult:
    """Outcome of a lock transition.

    Attributes:
        ok: True if the transition was applied.
        lock_id: Lock governing the file after the call ("" when unlocked).
            On conflict this is the lock currently held.
    """

    ok: bool
    lock_id: str


class LocksTable:
    """Per-file lock state machine.

    Attributes:
        name: Entity name ("locks").
        documents: Document store used for existence checks. Its blob store
            also holds the lock records.
    """

    name = "locks"

    def __init__(self, documents: DocumentsTable):
        self.documents = documents
        self._locks: dict[str, Lock] = {}
        self._guards: dict[str, asyncio.Lock] = {}

    async def load(self) -> int:
        """Rebuild lock state from the blob store.

        Records whose document no longer exists are dropped.

        Returns:
            Number of locks loaded.
        """
        blobs = self.documents.blobs
        count = 0
        for key in await blobs.keys():
            if not key.endswith(_LOCK_SUFFIX):
                continue
            raw = await blobs.get(key)
            if raw is None:
                continue
            try:
                lock = Lock(**json.loads(raw))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable lock record {key}: {e}")
                continue
            if await self.documents.get(lock.file_id) is None:
                logger.warning(f"Dropping lock on unknown file {lock.file_id}")
                await blobs.delete(key)
                continue
            self._locks[lock.file_id] = lock
            count += 1
        if count:
            logger.info(f"Loaded {count} locks from {blobs.protocol} storage")
        return count

    async def _save(self, lock: Lock) -> None:
        await self.documents.blobs.put(
            f"{lock.file_id}{_LOCK_SUFFIX}", json.dumps(lock.to_dict()).encode()
        )
        self._locks[lock.file_id] = lock

    async def _drop(self, file_id: str) -> None:
        await self.documents.blobs.delete(f"{file_id}{_LOCK_SUFFIX}")
        del self._locks[file_id]

    @asynccontextmanager
    async def guard(self, file_id: str) -> AsyncIterator[None]:
        """Hold the per-file mutex. Also used by PutFile around check + write."""
        mutex = self._guards.get(file_id)
        if mutex is None:
            mutex = self._guards.setdefault(file_id, asyncio.Lock())
        async with mutex:
            yield

    def _held(self, file_id: str) -> str:
        lock = self._locks.get(file_id)
        return lock.lock_id if lock else ""

    async def current(self, file_id: str) -> Lock | None:
        return self._locks.get(file_id)

    async def list_all(self) -> list[Lock]:
        return sorted(self._locks.values(), key=lambda lock: lock.file_id)

    async def get_lock(self, file_id: str) -> str:
        """Return the current lock id, or "" when unlocked."""
        await self.documents.require(file_id)
        return self._held(file_id)

    async def lock(self, file_id: str, lock_id: str, holder_id: str) -> LockResult:
        """Acquire, or refresh when lock_id already holds the file."""
        await self.documents.require(file_id)
        async with self.guard(file_id):
            current = self._locks.get(file_id)
            if current is None:
                await self._save(Lock(file_id, lock_id, holder_id, time.time()))
                logger.info(f"WOPI Lock acquired: {file_id} by {holder_id}")
                return LockResult(True, lock_id)
            if current.lock_id == lock_id:
                await self._save(replace(current, timestamp=time.time()))
                return LockResult(True, lock_id)
            logger.info(f"WOPI Lock conflict: {file_id} held by another lock")
            return LockResult(False, current.lock_id)

    async def refresh_lock(self, file_id: str, lock_id: str) -> LockResult:
        await self.documents.require(file_id)
        async with self.guard(file_id):
            current = self._locks.get(file_id)
            if current is None or current.lock_id != lock_id:
                return LockResult(False, self._held(file_id))
            await self._save(replace(current, timestamp=time.time()))
            return LockResult(True, lock_id)

    async def unlock(self, file_id: str, lock_id: str) -> LockResult:
        await self.documents.require(file_id)
        async with self.guard(file_id):
            current = self._locks.get(file_id)
            if current is None or current.lock_id != lock_id:
                return LockResult(False, self._held(file_id))
            await self._drop(file_id)
            logger.info(f"WOPI Lock released: {file_id}")
            return LockResult(True, "")

    async def unlock_and_relock(
        self, file_id: str, old_lock_id: str, new_lock_id: str, holder_id: str
    ) -> LockResult:
        """Swap old_lock_id for new_lock_id in one step."""
        await self.documents.require(file_id)
        async with self.guard(file_id):
            current = self._locks.get(file_id)
            if current is None or current.lock_id != old_lock_id:
                return LockResult(False, self._held(file_id))
            await self._save(Lock(file_id, new_lock_id, holder_id, time.time()))
            return LockResult(True, new_lock_id)

    def check_write(self, file_id: str, lock_id: str | None) -> LockResult:
        """Check write compatibility without taking the guard.

        Callers must already hold guard(file_id). A write is allowed when the
        file is unlocked or when lock_id matches the held lock.
        """
        held = self._held(file_id)
        if held and held != (lock_id or ""):
            return LockResult(False, held)
        return LockResult(True, held)


__all__ = ["Lock", "LockResult", "LocksTable"]
