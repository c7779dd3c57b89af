# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the generated Click CLI."""

from __future__ import annotations

import base64
import json

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, proxy, *args):
    return runner.invoke(proxy.cli, list(args))


class TestEndpointCommands:
    def test_groups_registered(self, runner, proxy):
        result = invoke(runner, proxy, "--help")

        assert result.exit_code == 0
        for name in ("documents", "locks", "instance", "serve", "issue-token"):
            assert name in result.output

    def test_create_then_list(self, runner, proxy):
        created = invoke(runner, proxy, "documents", "create", "--name", "Notes.docx")
        assert created.exit_code == 0, created.output
        doc = json.loads(created.output)
        assert doc["owner_id"] == "demo-user-001"

        listed = invoke(runner, proxy, "documents", "list")
        assert [d["id"] for d in json.loads(listed.output)] == [doc["id"]]

    def test_upload(self, runner, proxy):
        content = base64.b64encode(b"hello").decode()

        result = invoke(
            runner, proxy, "documents", "upload", "--name", "a.docx", "--file-content", content
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["size"] == 5

    def test_required_option(self, runner, proxy):
        result = invoke(runner, proxy, "documents", "get")

        assert result.exit_code == 2
        assert "--file-id" in result.output

    def test_required_option_is_usage_error(self, runner, proxy):
        result = invoke(runner, proxy, "documents", "create")

        assert result.exit_code == 2
        assert "Missing option '--name'" in result.output

    def test_wopi_error_becomes_click_error(self, runner, proxy):
        result = invoke(runner, proxy, "documents", "get", "--file-id", "missing")

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_instance_health(self, runner, proxy):
        result = invoke(runner, proxy, "instance", "health")

        assert result.exit_code == 0
        assert json.loads(result.output)["status"] == "ok"


class TestIssueToken:
    def test_issue_token(self, runner, proxy):
        doc = json.loads(invoke(runner, proxy, "documents", "create", "--name", "a.xlsx").output)

        result = invoke(runner, proxy, "issue-token", doc["id"], "--permission", "view")

        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["document_type"] == "spreadsheet"
        access = proxy.tokens.validate(body["access_token"])
        assert access.permission == "view"
        assert access.user_id == "demo-user-001"

    def test_issue_token_for_user(self, runner, proxy):
        doc = json.loads(invoke(runner, proxy, "documents", "create", "--name", "a.docx").output)

        result = invoke(runner, proxy, "issue-token", doc["id"], "--user-id", "u42")

        access = proxy.tokens.validate(json.loads(result.output)["access_token"])
        assert access.user_id == "u42"
        assert access.user_name == "u42"

    def test_unknown_file(self, runner, proxy):
        result = invoke(runner, proxy, "issue-token", "missing")

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_bad_permission_rejected_by_click(self, runner, proxy):
        result = invoke(runner, proxy, "issue-token", "x", "--permission", "admin")
        assert result.exit_code == 2
