# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base class for endpoint introspection and command dispatch.

Endpoint classes expose host-application operations (document listing,
uploads, lock inspection, engine status). The API and CLI layers generate
routes and commands from their public async methods, so adding an operation
is a matter of writing one method.

Components:
    POST: Decorator to mark methods as HTTP POST.
    BaseEndpoint: Base class with introspection capabilities.
    current_user: Context variable holding the authenticated application user.

Example:
    Define an endpoint::

        from teamsync_wopi.interface.endpoint_base import BaseEndpoint, POST

        class DocumentEndpoint(BaseEndpoint):
            name = "documents"

            async def list(self) -> list[dict]:
                \"\"\"List all documents.\"\"\"
                return [d.to_dict() for d in await self.table.list_all()]

            @POST
            async def create(self, name: str) -> dict:
                \"\"\"Create an empty document.\"\"\"
                doc = await self.table.create(name, b"", owner_id=self.user.id)
                return doc.to_dict()

Note:
    BaseEndpoint.discover() scans ``teamsync_wopi.entities`` for
    ``<entity>/endpoint.py`` modules.
"""

from __future__ import annotations

import importlib
import inspect
import pkgutil
from collections.abc import Callable
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, get_type_hints

from pydantic import create_model

if TYPE_CHECKING:
    from ..tokens import User
    from ..wopi_base import WopiServerBase

_ENTITIES_PACKAGE = "teamsync_wopi.entities"

current_user: ContextVar[User | None] = ContextVar("current_user", default=None)


def POST(method: Callable) -> Callable:
    """Decorator to mark an endpoint method as POST.

    POST methods receive parameters via JSON request body
    instead of query parameters.

    Example:
        ::

            @POST
            async def upload(self, name: str, file_content: str) -> dict:
                ...
    """
    method._http_post = True  # type: ignore[attr-defined]
    return method


class BaseEndpoint:
    """Base class for all endpoints with introspection capabilities.

    Attributes:
        name: Endpoint name used in URL paths and CLI groups.
        table: Entity table the endpoint operates on (None for service-level
            endpoints).
        proxy: Owning WopiServerBase, for configuration and shared services.
    """

    name: str = ""

    def __init__(self, table: Any, proxy: WopiServerBase | None = None):
        self.table = table
        self.proxy = proxy

    @property
    def user(self) -> User:
        """Application user of the current request.

        Falls back to the configured demo user outside a request (CLI).
        """
        user = current_user.get()
        if user is None and self.proxy is not None:
            return self.proxy.demo_user
        if user is None:
            raise RuntimeError("No authenticated user")
        return user

    def get_methods(self) -> list[tuple[str, Callable]]:
        """Return all public async methods for API/CLI generation."""
        methods = []
        for method_name in dir(self):
            if method_name.startswith("_"):
                continue
            method = getattr(self, method_name)
            if callable(method) and inspect.iscoroutinefunction(method):
                methods.append((method_name, method))
        return methods

    def get_http_method(self, method_name: str) -> str:
        """Return "POST" if decorated with @POST, otherwise "GET"."""
        method = getattr(self, method_name)
        if getattr(method, "_http_post", False):
            return "POST"
        return "GET"

    def get_params(self, method_name: str) -> list[tuple[str, Any, Any]]:
        """Return (name, annotation, default) for each parameter of a method.

        Annotations are resolved through get_type_hints so string annotations
        (``from __future__ import annotations``) become real types; default is
        ``inspect.Parameter.empty`` for required parameters.
        """
        method = getattr(self, method_name)
        sig = inspect.signature(method)
        try:
            hints = get_type_hints(method)
        except Exception:
            hints = {}

        params = []
        for param_name, param in sig.parameters.items():
            if param_name == "self":
                continue
            annotation = hints.get(param_name, param.annotation)
            if annotation is inspect.Parameter.empty:
                annotation = Any
            params.append((param_name, annotation, param.default))
        return params

    def create_request_model(self, method_name: str) -> type:
        """Create a Pydantic model from a method signature.

        Used by the API layer to validate and parse request bodies.
        """
        fields = {}
        for param_name, annotation, default in self.get_params(method_name):
            if default is inspect.Parameter.empty:
                fields[param_name] = (annotation, ...)
            else:
                fields[param_name] = (annotation, default)

        model_name = f"{method_name.title().replace('_', '')}Request"
        return create_model(model_name, **fields)

    @classmethod
    def discover(cls) -> list[type[BaseEndpoint]]:
        """Autodiscover endpoint classes from ``entities/*/endpoint.py``.

        Example:
            ::

                for endpoint_class in BaseEndpoint.discover():
                    endpoint = endpoint_class(tables.get(endpoint_class.name), proxy)
        """
        endpoints: list[type[BaseEndpoint]] = []
        package = importlib.import_module(_ENTITIES_PACKAGE)
        for _, entity, is_pkg in pkgutil.iter_modules(package.__path__):
            if not is_pkg:
                continue
            module_name = f"{_ENTITIES_PACKAGE}.{entity}.endpoint"
            try:
                module = importlib.import_module(module_name)
            except ModuleNotFoundError as e:
                if e.name != module_name:
                    raise
                continue
            endpoint_class = cls._get_class_from_module(module)
            if endpoint_class is not None:
                endpoints.append(endpoint_class)
        return endpoints

    @classmethod
    def _get_class_from_module(cls, module: Any) -> type[BaseEndpoint] | None:
        """Extract the endpoint class defined in module."""
        for attr_name in dir(module):
            if attr_name.startswith("_"):
                continue
            obj = getattr(module, attr_name)
            if (
                isinstance(obj, type)
                and issubclass(obj, BaseEndpoint)
                and obj is not BaseEndpoint
                and obj.name
            ):
                return obj
        return None


__all__ = ["BaseEndpoint", "POST", "current_user"]
