# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Blob store contract and the memory/local backends."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

_SAFE_KEY = re.compile(r"^[A-Za-z0-9._-]{1,128}$")


class BlobStore(ABC):
    """Async key -> bytes store."""

    protocol: str = ""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the bytes stored under key, or None."""

    @abstractmethod
    async def put(self, key: str, data: bytes) -> None:
        """Store data under key, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was deleted."""

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return all stored keys, sorted."""


class MemoryBlobStore(BlobStore):
    """Dict-backed store. Contents live as long as the process."""

    protocol = "memory"

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self._blobs.get(key)

    async def put(self, key: str, data: bytes) -> None:
        self._blobs[key] = bytes(data)

    async def delete(self, key: str) -> bool:
        return self._blobs.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self._blobs

    async def keys(self) -> list[str]:
        return sorted(self._blobs)


class LocalBlobStore(BlobStore):
    """One file per key under base_path.

    Keys are used as file names and must match ``[A-Za-z0-9._-]{1,128}``
    (no leading dot), so no key can escape base_path. Writes go to a
    ``.tmp`` sibling that is then renamed over the target.
    """

    protocol = "local"

    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key) or key.startswith("."):
            raise ValueError(f"Invalid storage key '{key}'")
        return self.base_path / key

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not await aiofiles.os.path.isfile(path):
            return None
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    async def put(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        await aiofiles.os.makedirs(self.base_path, exist_ok=True)
        async with aiofiles.open(tmp, "wb") as f:
            await f.write(data)
        await aiofiles.os.replace(tmp, path)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        if not await aiofiles.os.path.isfile(path):
            return False
        await aiofiles.os.remove(path)
        return True

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.isfile(self._path(key))

    async def keys(self) -> list[str]:
        if not await aiofiles.os.path.isdir(self.base_path):
            return []
        names = []
        for name in await aiofiles.os.listdir(self.base_path):
            if name.endswith(".tmp") or name.startswith("."):
                continue
            if await aiofiles.os.path.isfile(self.base_path / name):
                names.append(name)
        return sorted(names)


def create_blob_store(protocol: str, **config: Any) -> BlobStore:
    """Build a blob store from a protocol name and its configuration.

    Args:
        protocol: "memory" or "local".
        **config: Backend options; "local" requires base_path.

    Raises:
        ValueError: Unknown protocol or missing base_path.
    """
    if protocol == "memory":
        return MemoryBlobStore()
    if protocol == "local":
        base_path = config.get("base_path")
        if not base_path:
            raise ValueError("local storage requires base_path")
        return LocalBlobStore(base_path)
    raise ValueError(f"Unknown storage protocol '{protocol}'")


__all__ = ["BlobStore", "LocalBlobStore", "MemoryBlobStore", "create_blob_store"]
