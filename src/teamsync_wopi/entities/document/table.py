# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Document store: file identifiers mapped to metadata and content.

Metadata is held in memory and mirrored to the blob store as a small JSON
record (``<file_id>.meta.json``) next to the content blob (``<file_id>``), so a
durable backend survives restarts: load() rebuilds the index.

Each document carries a version marker (``last_modified``): an ISO-8601 UTC
timestamp with microseconds that strictly advances on every put and rename.
It doubles as the WOPI ``X-WOPI-ItemVersion``.

Example:
    documents = DocumentsTable(MemoryBlobStore())
    doc = await documents.create("report.docx", b"...", owner_id="u1")
    doc = await documents.put(doc.id, b"new bytes")
    data = await documents.read(doc.id)
"""

from __future__ import annotations

import json
import logging
import re
import secrets
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ...discovery import classify
from ...errors import FileNotFound
from ...storage import BlobStore

logger = logging.getLogger(__name__)

_VERSION_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"
_META_SUFFIX = ".meta.json"
_FILE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# Sample documents pre-loaded at startup when present: (file name on disk, id, display name)
SAMPLE_FILES = [
    ("sample-document.docx", "sample-doc-001", "Sample Document.docx"),
    ("sample-spreadsheet.xlsx", "sample-sheet-001", "Sample Spreadsheet.xlsx"),
    ("sample-presentation.pptx", "sample-pres-001", "Sample Presentation.pptx"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_version(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(_VERSION_FORMAT)


def next_version(previous: str | None = None) -> str:
    """Return a version marker strictly greater than previous.

    The marker is the current UTC time; when the clock has not moved past
    previous (same microsecond, clock skew), previous + 1 microsecond is used.
    """
    now = _utcnow()
    if previous:
        try:
            prev = datetime.strptime(previous, _VERSION_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            prev = None
        if prev is not None and now <= prev:
            now = prev + timedelta(microseconds=1)
    return format_version(now)


@dataclass(frozen=True)
class Document:
    """Document metadata. Content bytes live in the blob store."""

    id: str
    name: str
    size: int
    last_modified: str
    owner_id: str

    @property
    def document_type(self) -> str:
        return classify(self.name).value

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["document_type"] = self.document_type
        return data


class DocumentsTable:
    """Document store over a BlobStore.

    Operations on a single file id are not reconciled against each other;
    concurrent writers are serialised upstream by the lock manager.

    Attributes:
        name: Entity name ("documents").
        blobs: Backing blob store.
    """

    name = "documents"

    def __init__(self, blobs: BlobStore):
        self.blobs = blobs
        self._documents: dict[str, Document] = {}

    async def load(self) -> int:
        """Rebuild the metadata index from the blob store.

        Returns:
            Number of documents loaded.
        """
        count = 0
        for key in await self.blobs.keys():
            if not key.endswith(_META_SUFFIX):
                continue
            raw = await self.blobs.get(key)
            if raw is None:
                continue
            try:
                doc = Document(**json.loads(raw))
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping unreadable document record {key}: {e}")
                continue
            self._documents[doc.id] = doc
            count += 1
        if count:
            logger.info(f"Loaded {count} documents from {self.blobs.protocol} storage")
        return count

    async def get(self, file_id: str) -> Document | None:
        return self._documents.get(file_id)

    async def require(self, file_id: str) -> Document:
        """Return the document or raise FileNotFound."""
        doc = self._documents.get(file_id)
        if doc is None:
            raise FileNotFound()
        return doc

    async def read(self, file_id: str) -> bytes:
        """Return the current content of a document."""
        await self.require(file_id)
        content = await self.blobs.get(file_id)
        if content is None:
            raise FileNotFound()
        return content

    async def list_all(self) -> list[Document]:
        return sorted(self._documents.values(), key=lambda d: (d.name.lower(), d.id))

    async def create(
        self,
        name: str,
        data: bytes,
        owner_id: str,
        file_id: str | None = None,
    ) -> Document:
        """Store a new document.

        Args:
            name: Display name (with extension).
            data: Initial content.
            owner_id: Owner user id.
            file_id: Explicit identifier; a ``doc-<hex>`` id is allocated if None.

        Raises:
            ValueError: Invalid or already used file_id, or empty name.
        """
        if not name:
            raise ValueError("Document name is required")
        if file_id is None:
            file_id = self._generate_id()
        elif not _FILE_ID.match(file_id):
            raise ValueError(f"Invalid file id '{file_id}'")
        elif file_id in self._documents:
            raise ValueError(f"Document '{file_id}' already exists")

        doc = Document(
            id=file_id,
            name=name,
            size=len(data),
            last_modified=next_version(),
            owner_id=owner_id,
        )
        await self.blobs.put(file_id, data)
        await self._save(doc)
        logger.info(f"Document created: {doc.name} ({doc.size} bytes) as {file_id}")
        return doc

    async def put(self, file_id: str, data: bytes) -> Document:
        """Replace the content of a document and advance its version."""
        doc = await self.require(file_id)
        updated = replace(doc, size=len(data), last_modified=next_version(doc.last_modified))
        await self.blobs.put(file_id, data)
        await self._save(updated)
        return updated

    async def rename(self, file_id: str, new_name: str) -> Document:
        """Change the display name of a document and advance its version."""
        doc = await self.require(file_id)
        updated = replace(doc, name=new_name, last_modified=next_version(doc.last_modified))
        await self._save(updated)
        return updated

    async def seed(
        self, directory: str | Path, owner_id: str, samples: list[tuple[str, str, str]] | None = None
    ) -> list[str]:
        """Pre-load sample documents found in directory.

        Documents already present (e.g. reloaded from durable storage) are
        left untouched.

        Returns:
            Ids of the documents created.
        """
        base = Path(directory)
        created = []
        for filename, file_id, display_name in samples or SAMPLE_FILES:
            path = base / filename
            if file_id in self._documents or not path.is_file():
                continue
            await self.create(display_name, path.read_bytes(), owner_id, file_id=file_id)
            created.append(file_id)
        if not created:
            logger.info("No sample files found. Upload documents to test.")
        return created

    async def _save(self, doc: Document) -> None:
        self._documents[doc.id] = doc
        await self.blobs.put(f"{doc.id}{_META_SUFFIX}", json.dumps(asdict(doc)).encode())

    def _generate_id(self) -> str:
        while True:
            file_id = f"doc-{secrets.token_hex(8)}"
            if file_id not in self._documents:
                return file_id


__all__ = ["Document", "DocumentsTable", "SAMPLE_FILES", "format_version", "next_version"]
