# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""HTTP client for connecting to a WOPI host.

Example:
    >>> from teamsync_wopi.http_client import WopiProxyClient, connect
    >>> proxy = connect("http://localhost:8080")
    >>> proxy.status()
    {'ok': True, 'active': True, ...}
"""

from .client import AccessGrant, Document, WopiProxyClient, connect, register_connection

__all__ = [
    "AccessGrant",
    "Document",
    "WopiProxyClient",
    "connect",
    "register_connection",
]
