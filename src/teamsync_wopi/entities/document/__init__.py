# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Document entity: document store and endpoint."""

from .endpoint import DocumentEndpoint
from .table import Document, DocumentsTable

__all__ = ["Document", "DocumentEndpoint", "DocumentsTable"]
