# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""TeamSync WOPI host: document editing integration for WOPI engines.

This package lets a host application hand documents to an external
document-editing engine (a Collabora Online derivative) and serves the
engine's WOPI callbacks: file metadata, content read/write and locking.

Main components:
    WopiConfig: Configuration dataclass
    WopiServerBase: Foundation class with services, stores and endpoints
    WopiProxy: WOPI protocol handlers and token issuance

Usage:
    from teamsync_wopi import WopiProxy, WopiConfig

    config = WopiConfig(
        jwt_secret="change-me",
        wopi_callback_url="http://wopi-host:8080",
    )
    proxy = WopiProxy(config=config)
    app = proxy.api  # FastAPI application
"""

from .wopi_base import WopiServerBase
from .wopi_config import WopiConfig, wopi_config_from_env
from .wopi_proxy import WopiProxy

__version__ = "0.1.0"

__all__ = [
    "WopiConfig",
    "WopiProxy",
    "WopiServerBase",
    "main",
    "wopi_config_from_env",
]


def main() -> None:
    """CLI entry point. Creates a WopiProxy from the environment and runs the CLI."""
    proxy = WopiProxy(config=wopi_config_from_env())
    proxy.cli()
