# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the WOPI protocol routes.

These go through FastAPI with TestClient and check the wire shape the
editing engine sees: status codes, X-WOPI-* headers and error bodies.
"""

from __future__ import annotations

import base64
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(proxy):
    with TestClient(proxy.api) as test_client:
        yield test_client


@pytest.fixture
def file_id(client):
    payload = base64.b64encode(b"original").decode()
    response = client.post(
        "/documents/upload", json={"name": "Report.docx", "file_content": payload}
    )
    assert response.status_code == 200
    return response.json()["id"]


@pytest.fixture
def token(proxy, file_id, alice):
    return proxy.tokens.issue(file_id, alice, "edit")


@pytest.fixture
def view_token(proxy, file_id, bob):
    return proxy.tokens.issue(file_id, bob, "view")


def operation(client, file_id, token, override, **headers):
    """POST /wopi/files/{id} with X-WOPI-Override and extra X-WOPI-* headers."""
    wopi_headers = {"X-WOPI-Override": override}
    wopi_headers.update({f"X-WOPI-{k}": v for k, v in headers.items()})
    return client.post(
        f"/wopi/files/{file_id}", params={"access_token": token}, headers=wopi_headers
    )


class TestCheckFileInfo:
    def test_returns_metadata(self, client, file_id, token):
        response = client.get(f"/wopi/files/{file_id}", params={"access_token": token})

        assert response.status_code == 200
        info = response.json()
        assert info["BaseFileName"] == "Report.docx"
        assert info["Size"] == 8
        assert info["UserCanWrite"] is True

    def test_bearer_header_accepted(self, client, file_id, token):
        response = client.get(
            f"/wopi/files/{file_id}", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200

    def test_missing_token_401(self, client, file_id):
        response = client.get(f"/wopi/files/{file_id}")

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_invalid_token_401(self, client, file_id):
        response = client.get(f"/wopi/files/{file_id}", params={"access_token": "bogus"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_token_for_other_file_403(self, client, proxy, token):
        other = client.post("/documents/create", json={"name": "Other.docx"}).json()["id"]

        response = client.get(f"/wopi/files/{other}", params={"access_token": token})

        assert response.status_code == 403
        assert response.json() == {"error": "Token not valid for this file"}

    def test_unknown_file_404(self, client, proxy, alice):
        token = proxy.tokens.issue("ghost", alice)
        response = client.get("/wopi/files/ghost", params={"access_token": token})

        assert response.status_code == 404
        assert response.json() == {"error": "File not found"}

    def test_unexpected_failure_is_bare_500(self, client, proxy, file_id, token):
        with patch.object(
            proxy, "check_file_info", AsyncMock(side_effect=RuntimeError("disk on fire"))
        ):
            response = client.get(f"/wopi/files/{file_id}", params={"access_token": token})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestGetPutFile:
    def test_get_file(self, client, proxy, file_id, token):
        response = client.get(f"/wopi/files/{file_id}/contents", params={"access_token": token})

        assert response.status_code == 200
        assert response.content == b"original"
        assert response.headers["content-type"] == "application/octet-stream"
        assert response.headers["X-WOPI-ItemVersion"]

    def test_put_file(self, client, file_id, token):
        response = client.post(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": token},
            content=b"edited bytes",
        )

        assert response.status_code == 200
        body = response.json()
        assert body["ItemVersion"] == response.headers["X-WOPI-ItemVersion"]
        assert body["LastModifiedTime"] == body["ItemVersion"]

        download = client.get(f"/wopi/files/{file_id}/contents", params={"access_token": token})
        assert download.content == b"edited bytes"
        assert download.headers["X-WOPI-ItemVersion"] == body["ItemVersion"]

    def test_put_file_view_token_403(self, client, file_id, view_token):
        response = client.post(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": view_token},
            content=b"nope",
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Write permission required"}

    def test_put_file_lock_mismatch_409(self, client, file_id, token):
        operation(client, file_id, token, "LOCK", Lock="L1")

        response = client.post(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": token},
            headers={"X-WOPI-Lock": "L2"},
            content=b"clobber",
        )

        assert response.status_code == 409
        assert response.headers["X-WOPI-Lock"] == "L1"
        assert response.json() == {"error": "Lock mismatch"}
        download = client.get(f"/wopi/files/{file_id}/contents", params={"access_token": token})
        assert download.content == b"original"

    def test_put_file_matching_lock(self, client, file_id, token):
        operation(client, file_id, token, "LOCK", Lock="L1")

        response = client.post(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": token},
            headers={"X-WOPI-Lock": "L1"},
            content=b"locked save",
        )

        assert response.status_code == 200

    def test_put_file_over_limit_413(self, client, proxy, file_id, token):
        proxy.config.max_upload_bytes = 10

        response = client.post(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": token},
            content=b"x" * 1000,
        )

        assert response.status_code == 413
        assert response.json() == {"error": "File too large"}
        download = client.get(f"/wopi/files/{file_id}/contents", params={"access_token": token})
        assert download.content == b"original"


class TestFileOperations:
    def test_lock_and_get_lock(self, client, file_id, token):
        response = operation(client, file_id, token, "LOCK", Lock="L1")
        assert response.status_code == 200
        assert response.headers["X-WOPI-Lock"] == "L1"

        response = operation(client, file_id, token, "GET_LOCK")
        assert response.status_code == 200
        assert response.headers["X-WOPI-Lock"] == "L1"

    def test_lock_conflict_409(self, client, file_id, token):
        operation(client, file_id, token, "LOCK", Lock="L1")

        response = operation(client, file_id, token, "LOCK", Lock="L2")

        assert response.status_code == 409
        assert response.headers["X-WOPI-Lock"] == "L1"
        assert response.json() == {"error": "Lock conflict"}

    def test_unlock_and_relock(self, client, file_id, token):
        operation(client, file_id, token, "LOCK", Lock="L1")

        response = operation(client, file_id, token, "UNLOCK_AND_RELOCK", Lock="L2", OldLock="L1")

        assert response.status_code == 200
        assert response.headers["X-WOPI-Lock"] == "L2"

    def test_unlock(self, client, file_id, token):
        operation(client, file_id, token, "LOCK", Lock="L1")

        assert operation(client, file_id, token, "UNLOCK", Lock="L1").status_code == 200
        assert operation(client, file_id, token, "GET_LOCK").headers["X-WOPI-Lock"] == ""

    def test_missing_lock_header_400(self, client, file_id, token):
        response = operation(client, file_id, token, "LOCK")

        assert response.status_code == 400
        assert response.json() == {"error": "X-WOPI-Lock header required"}

    def test_unknown_override_400(self, client, file_id, token):
        response = operation(client, file_id, token, "DELETE")

        assert response.status_code == 400
        assert response.json() == {"error": "Unknown WOPI operation"}

    def test_put_relative_501(self, client, file_id, token):
        response = operation(client, file_id, token, "PUT_RELATIVE")

        assert response.status_code == 501
        assert response.json() == {"error": "Not implemented"}

    def test_rename(self, client, file_id, token):
        response = operation(client, file_id, token, "RENAME_FILE", RequestedName="Final%20Draft")

        assert response.status_code == 200
        assert response.json() == {"Name": "Final Draft"}

    def test_put_user_info(self, client, file_id, token):
        response = client.post(
            f"/wopi/files/{file_id}",
            params={"access_token": token},
            headers={"X-WOPI-Override": "PUT_USER_INFO"},
            content=b"prefs",
        )
        assert response.status_code == 200

        info = client.get(f"/wopi/files/{file_id}", params={"access_token": token}).json()
        assert info["UserInfo"] == "prefs"

    def test_cors_exposes_wopi_headers(self, client, file_id, token):
        response = client.get(
            f"/wopi/files/{file_id}/contents",
            params={"access_token": token},
            headers={"Origin": "http://editor.test"},
        )

        exposed = response.headers["access-control-expose-headers"]
        assert "X-WOPI-Lock" in exposed
        assert "X-WOPI-ItemVersion" in exposed
