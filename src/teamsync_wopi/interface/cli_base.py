# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Click command generation from endpoint classes.

Each endpoint becomes a command group named after it, each public async
method a command whose options mirror the method parameters. Results are
printed as JSON.

Example:
    ::

        teamsync-wopi documents list
        teamsync-wopi documents get --file-id sample-doc-001
        teamsync-wopi locks list
"""

from __future__ import annotations

import asyncio
import inspect
import json
from collections.abc import Awaitable, Callable
from typing import Any

import click

from ..errors import WopiError
from .endpoint_base import BaseEndpoint

_CLICK_TYPES = {int: int, float: float, str: str}


def _make_option(name: str, annotation: Any, default: Any) -> Callable:
    """Build a click option for one method parameter."""
    flag = f"--{name.replace('_', '-')}"
    if annotation is bool:
        return click.option(
            f"{flag}/--no-{name.replace('_', '-')}",
            name,
            default=False if default is inspect.Parameter.empty else default,
        )
    options: dict[str, Any] = {"type": _CLICK_TYPES.get(annotation, str)}
    if default is inspect.Parameter.empty:
        # an explicit default, even None, satisfies required on click 8.3+
        options["required"] = True
    else:
        options.update(default=default, show_default=True)
    return click.option(flag, name, **options)


def register_endpoint(
    cli: click.Group,
    endpoint: BaseEndpoint,
    setup: Callable[[], Awaitable[None]] | None = None,
) -> click.Group:
    """Register endpoint methods as a Click command group.

    Args:
        cli: Parent group.
        endpoint: Endpoint instance.
        setup: Coroutine function awaited before every command (loads storage).

    Returns:
        The created group.
    """

    @cli.group(name=endpoint.name, help=f"{endpoint.name.title()} commands.")
    def group() -> None:
        pass

    for method_name, method in endpoint.get_methods():
        _add_command(group, endpoint, method_name, method, setup)
    return group


def _add_command(
    group: click.Group,
    endpoint: BaseEndpoint,
    method_name: str,
    method: Callable,
    setup: Callable[[], Awaitable[None]] | None,
) -> None:
    async def run(kwargs: dict[str, Any]) -> Any:
        if setup is not None:
            await setup()
        return await method(**kwargs)

    def command(**kwargs: Any) -> None:
        try:
            result = asyncio.run(run(kwargs))
        except (WopiError, ValueError) as e:
            raise click.ClickException(str(e)) from e
        click.echo(json.dumps(result, indent=2, default=str))

    for name, annotation, default in reversed(endpoint.get_params(method_name)):
        command = _make_option(name, annotation, default)(command)

    doc = inspect.getdoc(method) or f"{method_name} operation"
    group.command(name=method_name.replace("_", "-"), help=doc.split("\n")[0])(command)


__all__ = ["register_endpoint"]
