# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration dataclass for the TeamSync WOPI host.

WopiConfig is the single entry point for all configuration. It is consumed
by WopiServerBase (and thus WopiProxy) and can be built explicitly or from
``WOPI_*`` environment variables via wopi_config_from_env().

Usage:
    config = WopiConfig(
        jwt_secret="change-me",
        public_url="https://docs.example.com",
        wopi_callback_url="http://wopi-host:8080",
    )
    proxy = WopiProxy(config=config)

    # From environment (Docker/production):
    proxy = WopiProxy(config=wopi_config_from_env())
"""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUE_VALUES = ("1", "true", "yes")


@dataclass
class WopiConfig:
    """Main configuration container for the WOPI host.

    Groups:
        Service: instance_name, port
        Tokens: jwt_secret, wopi_token_ttl
        URLs: public_url, wopi_callback_url
        Engines: *_engine_url (server-to-server) and *_engine_public_url (browser)
        Discovery: discovery_cache_ttl, discovery_timeout, editor_lang
        Storage: storage_protocol, storage_path, samples_dir
        App auth: allow_demo_user, demo_user_*
        Uploads: max_upload_bytes

    Example:
        config = WopiConfig(jwt_secret="s3cret", unified_editor=True)
        wopi = WopiProxy(config=config)
    """

    instance_name: str = "teamsync-wopi"
    """Instance name for display and identification."""

    port: int = 8080
    """Default port for the API server."""

    jwt_secret: str | None = None
    """Shared signing secret for WOPI and app tokens. None generates a per-process secret."""

    wopi_token_ttl: int = 3600
    """WOPI access token time-to-live in seconds (default 1 hour)."""

    public_url: str = "http://localhost:8080"
    """Public URL of the host application (close/edit/view URLs, postMessage origin)."""

    wopi_callback_url: str = "http://host.docker.internal:8080"
    """Base URL the editing engine uses to call back into the WOPI endpoints."""

    document_engine_url: str = "http://localhost:9980"
    document_engine_public_url: str = "http://localhost:9980"
    sheets_engine_url: str = "http://localhost:9981"
    sheets_engine_public_url: str = "http://localhost:9981"
    presentation_engine_url: str = "http://localhost:9982"
    presentation_engine_public_url: str = "http://localhost:9982"
    editor_engine_url: str = "http://localhost:9983"
    editor_engine_public_url: str = "http://localhost:9983"

    unified_editor: bool = False
    """Route every document type to the unified editor engine."""

    discovery_cache_ttl: int = 3600
    """Seconds a fetched discovery URL path stays cached per engine."""

    discovery_timeout: float = 10.0
    """Timeout in seconds for discovery and health probe requests."""

    editor_lang: str = "en"
    """UI language passed to the editor in the iframe URL."""

    storage_protocol: str = "memory"
    """Blob store backend: "memory" or "local"."""

    storage_path: str = "/data/documents"
    """Base directory for the "local" storage backend."""

    samples_dir: str | None = None
    """Directory holding sample documents to pre-load at startup."""

    allow_demo_user: bool = True
    """Treat unauthenticated application requests as the demo user."""

    demo_user_id: str = "demo-user-001"
    demo_user_name: str = "Demo User"
    demo_user_email: str = "demo@example.com"

    max_upload_bytes: int = 50 * 1024 * 1024
    """Maximum accepted upload size in bytes."""


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in _TRUE_VALUES


def wopi_config_from_env() -> WopiConfig:
    """Build WopiConfig from WOPI_* environment variables.

    Environment variables:
        WOPI_INSTANCE: Instance name (default: "teamsync-wopi")
        WOPI_PORT: Server port (default: 8080)
        WOPI_JWT_SECRET / JWT_SECRET: Token signing secret
        WOPI_TOKEN_TTL: Token TTL in seconds (default: 3600)
        WOPI_PUBLIC_URL: Public URL of the host application
        WOPI_CALLBACK_URL: URL the engine uses to reach the WOPI endpoints
        WOPI_{DOCUMENT,SHEETS,PRESENTATION,EDITOR}_ENGINE_URL: Internal engine URLs
        WOPI_{DOCUMENT,SHEETS,PRESENTATION,EDITOR}_ENGINE_PUBLIC_URL: Browser engine URLs
        WOPI_UNIFIED_EDITOR: Route all documents to the unified editor
        WOPI_DISCOVERY_TTL: Discovery cache TTL in seconds (default: 3600)
        WOPI_DISCOVERY_TIMEOUT: Discovery request timeout (default: 10)
        WOPI_EDITOR_LANG: Editor UI language (default: "en")
        WOPI_STORAGE: Storage backend, "memory" or "local" (default: "memory")
        WOPI_STORAGE_PATH: Base path for local storage
        WOPI_SAMPLES_DIR: Sample documents directory
        WOPI_ALLOW_DEMO_USER: Allow unauthenticated app requests (default: true)
        WOPI_MAX_UPLOAD: Upload size limit in bytes

    Returns:
        WopiConfig instance populated from environment.
    """
    defaults = WopiConfig()
    env = os.environ.get
    return WopiConfig(
        instance_name=env("WOPI_INSTANCE", defaults.instance_name),
        port=int(env("WOPI_PORT", str(defaults.port))),
        jwt_secret=env("WOPI_JWT_SECRET") or env("JWT_SECRET"),
        wopi_token_ttl=int(env("WOPI_TOKEN_TTL", str(defaults.wopi_token_ttl))),
        public_url=env("WOPI_PUBLIC_URL", defaults.public_url),
        wopi_callback_url=env("WOPI_CALLBACK_URL", defaults.wopi_callback_url),
        document_engine_url=env("WOPI_DOCUMENT_ENGINE_URL", defaults.document_engine_url),
        document_engine_public_url=env(
            "WOPI_DOCUMENT_ENGINE_PUBLIC_URL", defaults.document_engine_public_url
        ),
        sheets_engine_url=env("WOPI_SHEETS_ENGINE_URL", defaults.sheets_engine_url),
        sheets_engine_public_url=env(
            "WOPI_SHEETS_ENGINE_PUBLIC_URL", defaults.sheets_engine_public_url
        ),
        presentation_engine_url=env(
            "WOPI_PRESENTATION_ENGINE_URL", defaults.presentation_engine_url
        ),
        presentation_engine_public_url=env(
            "WOPI_PRESENTATION_ENGINE_PUBLIC_URL", defaults.presentation_engine_public_url
        ),
        editor_engine_url=env("WOPI_EDITOR_ENGINE_URL", defaults.editor_engine_url),
        editor_engine_public_url=env(
            "WOPI_EDITOR_ENGINE_PUBLIC_URL", defaults.editor_engine_public_url
        ),
        unified_editor=_env_bool("WOPI_UNIFIED_EDITOR"),
        discovery_cache_ttl=int(env("WOPI_DISCOVERY_TTL", str(defaults.discovery_cache_ttl))),
        discovery_timeout=float(
            env("WOPI_DISCOVERY_TIMEOUT", str(defaults.discovery_timeout))
        ),
        editor_lang=env("WOPI_EDITOR_LANG", defaults.editor_lang),
        storage_protocol=env("WOPI_STORAGE", defaults.storage_protocol),
        storage_path=env("WOPI_STORAGE_PATH", defaults.storage_path),
        samples_dir=env("WOPI_SAMPLES_DIR"),
        allow_demo_user=_env_bool("WOPI_ALLOW_DEMO_USER", default=True),
        max_upload_bytes=int(env("WOPI_MAX_UPLOAD", str(defaults.max_upload_bytes))),
    )


__all__ = ["WopiConfig", "wopi_config_from_env"]
