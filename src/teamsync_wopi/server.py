# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

Components:
    app: FastAPI application with full WopiProxy lifecycle management.
    _proxy: Internal WopiProxy instance configured from WOPI_* environment
        variables (use app instead).

Example:
    Run with uvicorn::

        WOPI_JWT_SECRET=change-me uvicorn teamsync_wopi.server:app --port 8080

    Or via CLI::

        teamsync-wopi serve --port 8080
"""

from .wopi_config import wopi_config_from_env
from .wopi_proxy import WopiProxy

_proxy = WopiProxy(config=wopi_config_from_env())
app = _proxy.api
