# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared pytest fixtures for teamsync-wopi tests."""

from __future__ import annotations

import httpx
import pytest

from teamsync_wopi.discovery import DiscoveryResolver
from teamsync_wopi.tokens import User
from teamsync_wopi.wopi_config import WopiConfig
from teamsync_wopi.wopi_proxy import WopiProxy

TEST_SECRET = "test-secret-do-not-use"

DISCOVERY_XML = """<?xml version="1.0" encoding="utf-8"?>
<wopi-discovery>
  <net-zone name="external-http">
    <app name="writer">
      <action default="true" ext="docx" name="edit"
              urlsrc="http://engine:9980/browser/abc123/word.html?"/>
      <action ext="odt" name="edit"
              urlsrc="http://engine:9980/browser/abc123/cool.html?"/>
    </app>
  </net-zone>
</wopi-discovery>
"""


def discovery_transport(
    xml: str = DISCOVERY_XML, status_code: int = 200, calls: list | None = None
) -> httpx.MockTransport:
    """MockTransport answering every discovery request with xml."""

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(str(request.url))
        return httpx.Response(status_code, text=xml)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_transport():
    """Factory for discovery MockTransports (see discovery_transport)."""
    return discovery_transport


@pytest.fixture
def discovery_xml():
    return DISCOVERY_XML


@pytest.fixture
def config():
    """WopiConfig with a fixed secret and in-memory storage."""
    return WopiConfig(
        jwt_secret=TEST_SECRET,
        public_url="http://host.test",
        wopi_callback_url="http://wopi.test:8080",
    )


@pytest.fixture
def proxy(config):
    """WopiProxy whose discovery requests are answered by a mock transport."""
    wopi = WopiProxy(config=config)
    wopi.resolver = DiscoveryResolver(
        config, client=httpx.AsyncClient(transport=discovery_transport())
    )
    return wopi


@pytest.fixture
def alice():
    return User(id="u-alice", name="Alice", email="alice@example.com")


@pytest.fixture
def bob():
    return User(id="u-bob", name="Bob")


# Marker registration
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
