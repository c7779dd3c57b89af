# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""HTTP client for the WOPI host application API.

This module provides WopiProxyClient for programmatic access to the host
application endpoints (documents, token issuance, status), with support for
both sync and async contexts.

Features:
    - Auto-detects sync/async context (via @smartasync)
    - Persistent connection registration for REPL use
    - Typed dataclasses for Document and AccessGrant responses
    - Bearer application token authentication

Example:
    Async usage::

        client = WopiProxyClient("http://localhost:8080", token=app_token)
        docs = await client.documents.list()
        grant = await client.issue_token(docs[0].id, permissions="view")

    Sync usage (in REPL)::

        client = connect("http://localhost:8080")
        client.login()
        grant = client.issue_token("sample-doc-001")
        print(grant.iframe_src)

    Registered connection::

        register_connection("prod", "https://docs.example.com", token="...")
        client = connect("prod")
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
from genro_toolbox import smartasync

# Connection registry for REPL convenience
_connections: dict[str, dict[str, Any]] = {}


def register_connection(name: str, url: str, token: str | None = None) -> None:
    """Register a named connection for easy reuse.

    Example:
        >>> register_connection("prod", "https://docs.example.com", token="secret")
        >>> client = connect("prod")
    """
    _connections[name] = {"url": url, "token": token}


def connect(url_or_name: str, token: str | None = None) -> WopiProxyClient:
    """Create a WopiProxyClient, optionally using a registered connection.

    Args:
        url_or_name: Either a URL or a registered connection name.
        token: Application token (ignored if using registered connection).
    """
    if url_or_name in _connections:
        conn = _connections[url_or_name]
        return WopiProxyClient(conn["url"], token=conn["token"])
    return WopiProxyClient(url_or_name, token=token)


@dataclass
class Document:
    """Document metadata response."""

    id: str
    name: str
    size: int
    last_modified: str
    owner_id: str
    document_type: str = "document"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Create Document from API response dict."""
        return cls(
            id=data["id"],
            name=data["name"],
            size=data.get("size", 0),
            last_modified=data.get("last_modified", ""),
            owner_id=data.get("owner_id", ""),
            document_type=data.get("document_type", "document"),
        )


@dataclass
class AccessGrant:
    """WOPI access token and editor URL for one document."""

    access_token: str
    access_token_ttl: int
    iframe_src: str
    document_type: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessGrant:
        return cls(
            access_token=data["access_token"],
            access_token_ttl=data["access_token_ttl"],
            iframe_src=data["iframe_src"],
            document_type=data["document_type"],
        )


class DocumentsAPI:
    """Documents endpoint API wrapper."""

    def __init__(self, client: WopiProxyClient):
        self._client = client

    @smartasync
    async def list(self) -> list[Document]:
        """List all documents."""
        data = await self._client._get("/documents/list")
        return [Document.from_dict(d) for d in data]

    @smartasync
    async def get(self, file_id: str) -> Document:
        """Get one document's metadata."""
        data = await self._client._get("/documents/get", params={"file_id": file_id})
        return Document.from_dict(data)

    @smartasync
    async def upload(self, name: str, content: bytes) -> Document:
        """Upload a document from bytes."""
        payload = {"name": name, "file_content": base64.b64encode(content).decode("ascii")}
        data = await self._client._post("/documents/upload", payload)
        return Document.from_dict(data)

    @smartasync
    async def upload_file(self, path: str | Path) -> Document:
        """Upload a document from a local file."""
        path = Path(path)
        payload = {
            "name": path.name,
            "file_content": base64.b64encode(path.read_bytes()).decode("ascii"),
        }
        data = await self._client._post("/documents/upload", payload)
        return Document.from_dict(data)

    @smartasync
    async def create(self, name: str) -> Document:
        """Create an empty document."""
        data = await self._client._post("/documents/create", {"name": name})
        return Document.from_dict(data)


class WopiProxyClient:
    """HTTP client for the WOPI host application API.

    Attributes:
        documents: DocumentsAPI for document management

    Example:
        >>> client = WopiProxyClient("http://localhost:8080", token="...")
        >>> status = await client.status()
        >>> docs = await client.documents.list()
    """

    def __init__(self, base_url: str, token: str | None = None):
        """Initialize client.

        Args:
            base_url: WOPI host base URL.
            token: Optional application token. Without one the host treats
                requests as the demo user (when enabled).
        """
        self.base_url = base_url.rstrip("/")
        self.token = token

        self.documents = DocumentsAPI(self)

    def _headers(self) -> dict[str, str]:
        """Build request headers with optional bearer token."""
        headers: dict[str, str] = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Perform GET request."""
        async with httpx.AsyncClient() as http:
            resp = await http.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._headers(),
            )
            resp.raise_for_status()
            return resp.json()

    async def _post(self, path: str, payload: dict[str, Any] | None = None) -> Any:
        """Perform POST request."""
        async with httpx.AsyncClient() as http:
            resp = await http.post(
                f"{self.base_url}{path}",
                json=payload,
                headers=self._headers(),
            )
            resp.raise_for_status()
            return resp.json()

    @smartasync
    async def login(
        self,
        user_id: str | None = None,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> dict[str, Any]:
        """Obtain an application token and use it for later requests.

        Returns:
            Dict with 'token', 'expires_in' and 'user'.
        """
        payload = {"user_id": user_id, "user_name": user_name, "user_email": user_email}
        data = await self._post("/api/auth/token", payload)
        self.token = data["token"]
        return data

    @smartasync
    async def issue_token(self, file_id: str, permissions: str = "edit") -> AccessGrant:
        """Issue a WOPI access token and editor iframe URL for a document."""
        data = await self._post(f"/api/documents/{file_id}/token", {"permissions": permissions})
        return AccessGrant.from_dict(data)

    @smartasync
    async def status(self) -> dict[str, Any]:
        """Get service status.

        Returns:
            Dict with 'ok', 'active' and store counters.
        """
        return await self._get("/instance/status")

    @smartasync
    async def engines(self) -> dict[str, Any]:
        """Probe the editing engines through the host."""
        return await self._get("/instance/engines")

    @smartasync
    async def health(self) -> dict[str, Any]:
        """Health check (unauthenticated).

        Returns:
            Dict with 'status': 'ok'.
        """
        async with httpx.AsyncClient() as http:
            resp = await http.get(f"{self.base_url}/health")
            resp.raise_for_status()
            return resp.json()


__all__ = [
    "AccessGrant",
    "Document",
    "DocumentsAPI",
    "WopiProxyClient",
    "connect",
    "register_connection",
]
