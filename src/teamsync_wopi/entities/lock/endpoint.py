# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Read-only lock inspection for operators.

Lock transitions belong to the editing engine through the WOPI routes;
this endpoint only reports what is held.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...interface.endpoint_base import BaseEndpoint

if TYPE_CHECKING:
    from .table import LocksTable


class LockEndpoint(BaseEndpoint):
    name = "locks"
    table: LocksTable

    async def list(self) -> list[dict]:
        """List held locks."""
        return [lock.to_dict() for lock in await self.table.list_all()]

    async def get(self, file_id: str) -> dict:
        """Get the lock held on a file ("" when unlocked)."""
        return {"file_id": file_id, "lock_id": await self.table.get_lock(file_id)}


__all__ = ["LockEndpoint"]
