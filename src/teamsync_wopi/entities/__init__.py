# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""WOPI host entity modules.

This package contains the stores and their host application endpoints:
    - document: Document store (metadata + blob content)
    - lock: Per-file WOPI lock manager
    - instance: Service-level status and engine probes
"""

from .document import Document, DocumentEndpoint, DocumentsTable
from .instance import InstanceEndpoint
from .lock import Lock, LockEndpoint, LockResult, LocksTable

__all__ = [
    "Document",
    "DocumentEndpoint",
    "DocumentsTable",
    "InstanceEndpoint",
    "Lock",
    "LockEndpoint",
    "LockResult",
    "LocksTable",
]
