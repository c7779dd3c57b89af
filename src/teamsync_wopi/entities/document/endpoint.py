# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Document REST API endpoint for the host application.

Operations:
    - list: All documents with metadata
    - get: One document's metadata
    - upload: Store a new document from base64 content
      (multipart uploads go through POST /api/documents/upload)
    - create: Create an empty document (the editor initialises it on first open)

Example:
    CLI commands auto-generated::

        teamsync-wopi documents list
        teamsync-wopi documents get --file-id sample-doc-001
        teamsync-wopi documents create --name "Notes.docx"
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import TYPE_CHECKING

from ...errors import InvalidUpload, UploadTooLarge
from ...interface.endpoint_base import POST, BaseEndpoint

if TYPE_CHECKING:
    from .table import DocumentsTable

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"docx", "doc", "xlsx", "xls", "pptx", "ppt", "odt", "ods", "odp"})


def check_extension(name: str) -> None:
    """Raise InvalidUpload unless name has an office document extension."""
    _, dot, ext = name.rpartition(".")
    if not dot or ext.lower() not in ALLOWED_EXTENSIONS:
        raise InvalidUpload(
            "Invalid file type. Allowed: " + ", ".join(sorted(ALLOWED_EXTENSIONS))
        )


async def store_upload(
    table: DocumentsTable, name: str, data: bytes, owner_id: str, max_bytes: int | None
) -> dict:
    """Validate an uploaded file and store it as a new document.

    Raises:
        InvalidUpload: Unsupported extension.
        UploadTooLarge: data exceeds max_bytes.
    """
    check_extension(name)
    if max_bytes is not None and len(data) > max_bytes:
        raise UploadTooLarge()
    doc = await table.create(name, data, owner_id=owner_id)
    logger.info(f"Uploaded: {doc.name} ({doc.size} bytes) as {doc.id}")
    return doc.to_dict()


class DocumentEndpoint(BaseEndpoint):
    """Document operations for the host application.

    Attributes:
        name: Endpoint name used in URL paths ("documents").
        table: DocumentsTable.
    """

    name = "documents"
    table: DocumentsTable

    async def list(self) -> list[dict]:
        """List all documents."""
        return [doc.to_dict() for doc in await self.table.list_all()]

    async def get(self, file_id: str) -> dict:
        """Get one document's metadata."""
        doc = await self.table.require(file_id)
        return doc.to_dict()

    @POST
    async def upload(self, name: str, file_content: str) -> dict:
        """Upload a document.

        Args:
            name: File name including the extension.
            file_content: Base64-encoded content.

        Raises:
            InvalidUpload: Unsupported extension or content not valid base64.
            UploadTooLarge: Decoded content exceeds max_upload_bytes.
        """
        check_extension(name)
        try:
            data = base64.b64decode(file_content, validate=True)
        except (binascii.Error, ValueError):
            raise InvalidUpload("file_content must be base64") from None

        limit = self.proxy.config.max_upload_bytes if self.proxy else None
        return await store_upload(self.table, name, data, self.user.id, limit)

    @POST
    async def create(self, name: str) -> dict:
        """Create an empty document."""
        check_extension(name)
        doc = await self.table.create(name, b"", owner_id=self.user.id)
        return doc.to_dict()


__all__ = ["ALLOWED_EXTENSIONS", "DocumentEndpoint", "check_extension", "store_upload"]
