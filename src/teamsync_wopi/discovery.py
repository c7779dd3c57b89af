# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Discovery and routing: which editing engine opens a file, and with which URL.

Routing is a pure lookup: classify() maps a file name to a DocumentType by
extension, EngineRouter maps the type to an engine (per-type engines, or one
shared engine in unified mode).

Discovery fetches ``{engine}/hosting/discovery`` and extracts the path of the
editor launch page (``urlsrc``). Results are cached per engine URL for a
configurable TTL. Any failure falls back to DEFAULT_URL_PATH: opening a
document is never refused because discovery is unavailable.

Example:
    resolver = DiscoveryResolver(config)
    src = await resolver.build_iframe_src("doc-1", token, "budget.xlsx")
    # http://localhost:9981/browser/abc/cool.html?WOPISrc=...&access_token=...&lang=en
"""

from __future__ import annotations

import asyncio
import logging
import time
import xml.etree.ElementTree as ET
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlparse

import httpx

if TYPE_CHECKING:
    from .wopi_config import WopiConfig

logger = logging.getLogger(__name__)

DEFAULT_URL_PATH = "/browser/dist/cool.html"
DISCOVERY_PATH = "/hosting/discovery"


class DocumentType(str, Enum):
    """Document category used to pick an editing engine."""

    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"


EXTENSION_TYPES: dict[str, DocumentType] = {
    **{ext: DocumentType.DOCUMENT for ext in ("docx", "doc", "odt", "rtf", "txt")},
    **{ext: DocumentType.SPREADSHEET for ext in ("xlsx", "xls", "ods", "csv")},
    **{ext: DocumentType.PRESENTATION for ext in ("pptx", "ppt", "odp")},
}


def classify(filename: str) -> DocumentType:
    """Return the document type for a file name. Unknown extensions are documents."""
    _, dot, ext = filename.rpartition(".")
    if not dot:
        return DocumentType.DOCUMENT
    return EXTENSION_TYPES.get(ext.lower(), DocumentType.DOCUMENT)


@dataclass(frozen=True)
class EngineRoute:
    """Engine endpoints for one document type.

    Attributes:
        name: Engine label ("document", "sheets", "presentation", "editor").
        internal_url: Server-to-server URL (discovery, health probes).
        public_url: URL the browser loads in the iframe.
    """

    name: str
    internal_url: str
    public_url: str


class EngineRouter:
    """Maps document types to engine endpoints from WopiConfig."""

    def __init__(self, config: WopiConfig):
        self.unified = config.unified_editor
        self.engines = {
            "document": EngineRoute(
                "document", config.document_engine_url, config.document_engine_public_url
            ),
            "sheets": EngineRoute(
                "sheets", config.sheets_engine_url, config.sheets_engine_public_url
            ),
            "presentation": EngineRoute(
                "presentation",
                config.presentation_engine_url,
                config.presentation_engine_public_url,
            ),
            "editor": EngineRoute(
                "editor", config.editor_engine_url, config.editor_engine_public_url
            ),
        }

    def route(self, doc_type: DocumentType) -> EngineRoute:
        if self.unified:
            return self.engines["editor"]
        if doc_type is DocumentType.SPREADSHEET:
            return self.engines["sheets"]
        if doc_type is DocumentType.PRESENTATION:
            return self.engines["presentation"]
        return self.engines["document"]

    @property
    def mode(self) -> str:
        return "unified-editor" if self.unified else "multi-variant"


class TTLCache:
    """Small key -> value cache where entries expire after ttl_seconds."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires = entry
        if self._clock() >= expires:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def get_or_fallback(self, key: str, fallback: Any) -> Any:
        value = self.get(key)
        return fallback if value is None else value

    def clear(self) -> None:
        self._entries.clear()


def parse_discovery(xml_text: str) -> str | None:
    """Extract the launch page path from a discovery document.

    Prefers the first ``urlsrc`` pointing at ``cool.html``, else the first
    ``urlsrc`` found. Returns None when there is none.
    """
    root = ET.fromstring(xml_text)
    urls = [el.attrib["urlsrc"] for el in root.iter() if "urlsrc" in el.attrib]
    if not urls:
        return None
    chosen = next((u for u in urls if "cool.html" in u), urls[0])
    return urlparse(chosen).path or None


class DiscoveryResolver:
    """Resolves engine launch URLs with a TTL-bounded discovery cache.

    Attributes:
        router: EngineRouter for type -> engine resolution.
        cache: TTLCache of engine URL -> launch page path.
    """

    def __init__(
        self,
        config: WopiConfig,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.router = EngineRouter(config)
        self.cache = TTLCache(config.discovery_cache_ttl, clock=clock)
        self._client = client
        self._owns_client = False

    def open(self) -> None:
        """Create a shared HTTP client for discovery and probes, if none was given."""
        if self._client is None:
            self._client = httpx.AsyncClient()
            self._owns_client = True

    async def aclose(self) -> None:
        """Close the HTTP client created by open()."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, timeout=self.config.discovery_timeout)
        async with httpx.AsyncClient() as http:
            return await http.get(url, timeout=self.config.discovery_timeout)

    async def fetch_url_path(self, engine_url: str) -> str:
        """Return the launch page path for an engine, using the cache.

        Failures are logged and answered with DEFAULT_URL_PATH; they are not
        cached, so the next request retries discovery.
        """
        cached = self.cache.get(engine_url)
        if cached is not None:
            return cached

        try:
            resp = await self._get(f"{engine_url}{DISCOVERY_PATH}")
            resp.raise_for_status()
            url_path = parse_discovery(resp.text)
            if not url_path:
                raise ValueError("no urlsrc in discovery XML")
        except (httpx.HTTPError, ET.ParseError, ValueError) as e:
            logger.error(f"Discovery failed for {engine_url}: {e}")
            return self.cache.get_or_fallback(engine_url, DEFAULT_URL_PATH)

        self.cache.set(engine_url, url_path)
        logger.info(f"Discovery: {engine_url} launch path {url_path}")
        return url_path

    def wopi_src(self, file_id: str) -> str:
        """WOPI source URL the engine calls back, percent-encoded."""
        base = self.config.wopi_callback_url.rstrip("/")
        return quote(f"{base}/wopi/files/{file_id}", safe="")

    async def build_iframe_src(self, file_id: str, access_token: str, filename: str) -> str:
        """Build the editor iframe URL for a file.

        Discovery goes to the engine's internal URL; the returned URL uses
        the engine's public URL so the browser can load it.
        """
        doc_type = classify(filename)
        engine = self.router.route(doc_type)
        url_path = await self.fetch_url_path(engine.internal_url)
        logger.info(f"Router: '{filename}' ({doc_type.value}) -> {engine.name} engine")
        return (
            f"{engine.public_url.rstrip('/')}{url_path}"
            f"?WOPISrc={self.wopi_src(file_id)}"
            f"&access_token={quote(access_token, safe='')}"
            f"&lang={self.config.editor_lang}"
        )

    async def probe(self, engine_url: str) -> str:
        """Return "healthy" if the engine answers discovery, else "not reachable"."""
        try:
            resp = await self._get(f"{engine_url}{DISCOVERY_PATH}")
        except httpx.HTTPError as e:
            logger.info(f"Health: {engine_url} not reachable ({e})")
            return "not reachable"
        return "healthy" if resp.is_success else "not reachable"

    async def health(self) -> dict[str, Any]:
        """Probe every configured engine.

        Returns:
            Dict with status ("healthy", "partial", "degraded"), mode and
            per-engine statuses. In unified mode only the editor engine must
            be healthy; otherwise the three per-type engines must be.
        """
        names = list(self.router.engines)
        results = await asyncio.gather(
            *(self.probe(self.router.engines[n].internal_url) for n in names)
        )
        statuses = dict(zip(names, results))
        healthy = {n for n, s in statuses.items() if s == "healthy"}

        if self.router.unified:
            all_healthy = "editor" in healthy
        else:
            all_healthy = {"document", "sheets", "presentation"} <= healthy

        if all_healthy:
            status = "healthy"
        elif healthy:
            status = "partial"
        else:
            status = "degraded"
        return {"status": status, "mode": self.router.mode, "engines": statuses}


__all__ = [
    "DEFAULT_URL_PATH",
    "DiscoveryResolver",
    "DocumentType",
    "EngineRoute",
    "EngineRouter",
    "TTLCache",
    "classify",
    "parse_discovery",
]
