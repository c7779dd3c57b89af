# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Interface layer for API and CLI.

Host application operations are exposed through multiple interfaces using
introspection-based route/command generation; the WOPI protocol routes are
registered explicitly by the API layer.

Components:
    BaseEndpoint: Base class for all endpoint definitions.
    create_app: FastAPI application factory.
    register_api_endpoint: Register endpoint as FastAPI routes.
    register_cli_endpoint: Register endpoint as Click commands.

Example:
    Create a FastAPI application::

        from teamsync_wopi.interface import create_app
        from teamsync_wopi.wopi_proxy import WopiProxy

        app = create_app(WopiProxy())

    Register CLI commands::

        import click
        from teamsync_wopi.interface import register_cli_endpoint

        @click.group()
        def cli():
            pass

        register_cli_endpoint(cli, DocumentEndpoint(documents, proxy))
"""

from .api_base import create_app
from .api_base import register_endpoint as register_api_endpoint
from .cli_base import register_endpoint as register_cli_endpoint
from .endpoint_base import POST, BaseEndpoint, current_user

__all__ = [
    "BaseEndpoint",
    "POST",
    "create_app",
    "current_user",
    "register_api_endpoint",
    "register_cli_endpoint",
]
