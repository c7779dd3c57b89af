# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base class for the WOPI host: services, stores, endpoints, and interface factories.

WopiServerBase is the foundation layer of teamsync-wopi, providing:

1. Configuration: WopiConfig instance at self.config
2. Tokens: TokenService at self.tokens (WOPI and application tokens)
3. Stores: blob store at self.blobs, DocumentsTable at self.documents,
   LocksTable at self.locks
4. Discovery: DiscoveryResolver at self.resolver
5. Endpoints: Registry at self.endpoints with autodiscovered Endpoint classes
6. Interfaces: Lazy `api` (FastAPI) and `cli` (Click) properties

Class Hierarchy:
    WopiServerBase (this class)
        └── WopiProxy (wopi_proxy.py): adds WOPI protocol handlers

Usage (testing without runtime):
    wopi = WopiServerBase(WopiConfig(jwt_secret="test"))
    await wopi.init()
    await wopi.documents.create("a.docx", b"...", owner_id="u1")

Usage (production via wopi.api):
    wopi = WopiProxy(config=wopi_config_from_env())
    app = wopi.api  # FastAPI app with auto-start/stop lifespan
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING

from .discovery import DiscoveryResolver
from .entities.document import DocumentsTable
from .entities.lock import LocksTable
from .interface import BaseEndpoint
from .storage import create_blob_store
from .tokens import TokenService, User
from .wopi_config import WopiConfig

if TYPE_CHECKING:
    import click
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class WopiServerBase:
    """Foundation layer: config, services, stores, endpoints, interface factories.

    Attributes:
        config: WopiConfig instance with all configuration
        tokens: TokenService signing WOPI and application tokens
        blobs: BlobStore holding document content and metadata records
        documents: DocumentsTable
        locks: LocksTable
        resolver: DiscoveryResolver for engine routing and iframe URLs
        endpoints: Dict of Endpoint instances keyed by name

    Properties:
        api: FastAPI app (lazy, created on first access)
        cli: Click CLI group (lazy, created on first access)
    """

    def __init__(self, config: WopiConfig | None = None):
        """Initialize base WOPI host with config and services.

        Args:
            config: WopiConfig instance. If None, creates default.
        """
        self.config = config or WopiConfig()

        self.tokens = TokenService(self._signing_secret(), ttl_seconds=self.config.wopi_token_ttl)
        self.blobs = create_blob_store(
            self.config.storage_protocol, base_path=self.config.storage_path
        )
        self.documents = DocumentsTable(self.blobs)
        self.locks = LocksTable(self.documents)
        self.resolver = DiscoveryResolver(self.config)
        self.tables = {table.name: table for table in (self.documents, self.locks)}

        self.endpoints: dict[str, BaseEndpoint] = {}
        self._discover_endpoints()
        self._initialized = False

    def _signing_secret(self) -> str:
        """Configured signing secret, or a random one valid for this process only."""
        if self.config.jwt_secret:
            return self.config.jwt_secret
        logger.warning(
            "No JWT secret configured (WOPI_JWT_SECRET): using a random per-process secret. "
            "Tokens will not survive a restart."
        )
        return secrets.token_urlsafe(32)

    @property
    def demo_user(self) -> User:
        """User assumed for unauthenticated application requests and the CLI."""
        return User(
            id=self.config.demo_user_id,
            name=self.config.demo_user_name,
            email=self.config.demo_user_email,
        )

    def _discover_endpoints(self) -> None:
        """Autodiscover Endpoint classes and bind them to their tables."""
        for endpoint_class in BaseEndpoint.discover():
            table = self.tables.get(endpoint_class.name)
            self.endpoints[endpoint_class.name] = endpoint_class(table, proxy=self)

    def endpoint(self, name: str) -> BaseEndpoint:
        """Get endpoint by name."""
        if name not in self.endpoints:
            raise ValueError(f"Endpoint '{name}' not found")
        return self.endpoints[name]

    async def init(self) -> None:
        """Load stored documents and locks, then seed sample files. Runs once."""
        if self._initialized:
            return
        await self.documents.load()
        await self.locks.load()
        if self.config.samples_dir:
            await self.documents.seed(self.config.samples_dir, owner_id=self.config.demo_user_id)
        self._initialized = True
        logger.info(
            f"WopiServerBase initialized ({self.blobs.protocol} storage, "
            f"{self.resolver.router.mode} routing)"
        )

    # -------------------------------------------------------------------------
    # Interface factories (lazy properties)
    # -------------------------------------------------------------------------

    @property
    def api(self) -> FastAPI:
        """FastAPI app with all endpoints, WOPI routes, and lifespan.

        Created on first access. Includes default lifespan that calls
        wopi.start() on startup and wopi.stop() on shutdown.

        Usage:
            uvicorn teamsync_wopi.server:app
        """
        if not hasattr(self, "_api") or self._api is None:
            from .interface import create_app

            self._api = create_app(self)
        return self._api

    @property
    def cli(self) -> click.Group:
        """Click CLI group with endpoint commands and service commands.

        Created on first access. Includes:
        - Endpoint commands: documents, locks, instance
        - Service commands: serve

        Usage:
            teamsync-wopi --help
        """
        if not hasattr(self, "_cli") or self._cli is None:
            self._cli = self._create_cli()
        return self._cli

    def _create_cli(self) -> click.Group:
        """Build Click CLI: endpoint commands + service commands."""
        import click

        from .interface import register_cli_endpoint

        @click.group()
        @click.version_option(package_name="teamsync-wopi")
        def cli() -> None:
            """TeamSync WOPI host: document editing integration service."""
            pass

        for endpoint in self.endpoints.values():
            register_cli_endpoint(cli, endpoint, setup=self.init)

        @cli.command("serve")
        @click.option("--host", default="0.0.0.0", help="Bind host")
        @click.option("--port", "-p", default=self.config.port, help="Bind port")
        @click.option("--reload", is_flag=True, help="Enable auto-reload")
        def serve_cmd(host: str, port: int, reload: bool) -> None:
            """Start the API server."""
            import uvicorn

            uvicorn.run(
                "teamsync_wopi.server:app",
                host=host,
                port=port,
                reload=reload,
            )

        return cli


__all__ = ["WopiServerBase"]
