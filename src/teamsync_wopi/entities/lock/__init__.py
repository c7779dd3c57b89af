# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Lock entity: per-file lock manager and read-only endpoint."""

from .endpoint import LockEndpoint
from .table import Lock, LockResult, LocksTable

__all__ = ["Lock", "LockEndpoint", "LockResult", "LocksTable"]
