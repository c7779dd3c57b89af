# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Instance REST API endpoint for service-level operations.

Operations include:
    - health: Container orchestration health check (also served unauthenticated at /health)
    - status: Service status and store counters
    - engines: Reachability of every configured editing engine

Example:
    CLI commands auto-generated::

        teamsync-wopi instance health
        teamsync-wopi instance status
        teamsync-wopi instance engines
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...interface.endpoint_base import BaseEndpoint

if TYPE_CHECKING:
    from ...wopi_proxy import WopiProxy


class InstanceEndpoint(BaseEndpoint):
    """REST API endpoint for instance-level operations.

    Has no table of its own; works on the owning proxy.

    Attributes:
        name: Endpoint name used in URL paths ("instance").
        proxy: Owning WopiProxy.
    """

    name = "instance"
    proxy: WopiProxy

    async def health(self) -> dict:
        """Health check for container orchestration.

        Lightweight liveness probe: does not contact the editing engines.

        Returns:
            Dict with status "ok", instance name and routing mode.
        """
        return {
            "status": "ok",
            "instance": self.proxy.config.instance_name,
            "mode": self.proxy.resolver.router.mode,
        }

    async def status(self) -> dict:
        """Service status.

        Returns:
            Dict with ok=True, active flag, document and lock counts.
        """
        return {
            "ok": True,
            "active": self.proxy.active,
            "instance": self.proxy.config.instance_name,
            "storage": self.proxy.blobs.protocol,
            "documents": len(await self.proxy.documents.list_all()),
            "locks": len(await self.proxy.locks.list_all()),
        }

    async def engines(self) -> dict:
        """Probe every editing engine's discovery endpoint.

        Returns:
            Dict with overall status ("healthy", "partial" or "degraded"),
            routing mode and per-engine reachability.
        """
        return await self.proxy.resolver.health()


__all__ = ["InstanceEndpoint"]
