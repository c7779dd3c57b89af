# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Instance entity: service-level endpoint."""

from .endpoint import InstanceEndpoint

__all__ = ["InstanceEndpoint"]
