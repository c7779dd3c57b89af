# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the host application API: auth, generated routes, token issuance."""

from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from teamsync_wopi.interface import register_api_endpoint
from teamsync_wopi.interface.endpoint_base import POST, BaseEndpoint
from teamsync_wopi.wopi_proxy import WopiProxy


@pytest.fixture
def client(proxy):
    with TestClient(proxy.api) as test_client:
        yield test_client


@pytest.fixture
def locked_down(config):
    """Proxy that refuses unauthenticated application requests."""
    config.allow_demo_user = False
    return WopiProxy(config=config)


def upload(client, name="Report.docx", data=b"content", **kwargs):
    payload = {"name": name, "file_content": base64.b64encode(data).decode()}
    return client.post("/documents/upload", json=payload, **kwargs)


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "instance": "teamsync-wopi",
            "mode": "multi-variant",
        }

    def test_instance_status(self, client):
        upload(client)
        response = client.get("/instance/status")

        assert response.status_code == 200
        body = response.json()
        assert body["active"] is True
        assert body["documents"] == 1
        assert body["locks"] == 0
        assert body["storage"] == "memory"

    def test_instance_engines(self, client):
        response = client.get("/instance/engines")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAppAuthentication:
    def test_demo_user_without_header(self, client):
        created = upload(client).json()
        assert created["owner_id"] == "demo-user-001"

    def test_login_then_bearer(self, client):
        login = client.post("/api/auth/token", json={"user_id": "u7", "user_name": "Seven"})
        assert login.status_code == 200
        app_token = login.json()["token"]

        created = upload(client, headers={"Authorization": f"Bearer {app_token}"}).json()

        assert created["owner_id"] == "u7"

    def test_login_without_body(self, client):
        response = client.post("/api/auth/token")

        assert response.status_code == 200
        assert response.json()["user"]["id"] == "demo-user-001"

    def test_invalid_bearer_401(self, client):
        response = client.get("/documents/list", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid or expired token"}

    def test_wopi_token_is_not_an_app_token(self, client, proxy, alice):
        file_id = upload(client).json()["id"]
        wopi_token = proxy.tokens.issue(file_id, alice)

        response = client.get("/documents/list", headers={"Authorization": f"Bearer {wopi_token}"})

        assert response.status_code == 401

    def test_header_required_without_demo_user(self, locked_down):
        with TestClient(locked_down.api) as client:
            response = client.get("/documents/list")
            assert response.status_code == 401
            assert response.json() == {"error": "Authentication required"}

            assert client.post("/api/auth/token").status_code in (404, 405)

            app_token = locked_down.tokens.issue_app_token(locked_down.demo_user)
            response = client.get(
                "/documents/list", headers={"Authorization": f"Bearer {app_token}"}
            )
            assert response.status_code == 200

    def test_health_needs_no_auth(self, locked_down):
        with TestClient(locked_down.api) as client:
            assert client.get("/health").status_code == 200


class TestDocumentRoutes:
    def test_upload_list_get(self, client):
        created = upload(client, name="Budget.xlsx").json()

        listed = client.get("/documents/list").json()
        assert [d["id"] for d in listed] == [created["id"]]

        fetched = client.get("/documents/get", params={"file_id": created["id"]}).json()
        assert fetched["document_type"] == "spreadsheet"

    def test_get_unknown_404(self, client):
        response = client.get("/documents/get", params={"file_id": "missing"})

        assert response.status_code == 404
        assert response.json() == {"error": "File not found"}

    def test_upload_bad_extension_400(self, client):
        response = upload(client, name="virus.exe")

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid file type")

    def test_upload_too_large_413(self, client, proxy):
        proxy.config.max_upload_bytes = 3

        response = upload(client, data=b"four")

        assert response.status_code == 413
        assert response.json() == {"error": "File too large"}

    def test_upload_missing_field_422(self, client):
        response = client.post("/documents/upload", json={"name": "a.docx"})

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"][-1] == "file_content"

    def test_locks_routes(self, client, proxy, alice):
        file_id = upload(client).json()["id"]
        token = proxy.tokens.issue(file_id, alice)
        client.post(
            f"/wopi/files/{file_id}",
            params={"access_token": token},
            headers={"X-WOPI-Override": "LOCK", "X-WOPI-Lock": "L1"},
        )

        assert client.get("/locks/get", params={"file_id": file_id}).json() == {
            "file_id": file_id,
            "lock_id": "L1",
        }
        assert [lock["holder_id"] for lock in client.get("/locks/list").json()] == ["u-alice"]


class TestMultipartUpload:
    def test_upload_file_field(self, client, proxy):
        response = client.post(
            "/api/documents/upload",
            files={"file": ("Slides.pptx", b"deck bytes", "application/octet-stream")},
        )

        assert response.status_code == 200
        created = response.json()
        assert (created["name"], created["size"]) == ("Slides.pptx", 10)
        assert created["owner_id"] == "demo-user-001"
        assert created["document_type"] == "presentation"

    def test_owner_from_bearer(self, client, proxy, alice):
        app_token = proxy.tokens.issue_app_token(alice)

        response = client.post(
            "/api/documents/upload",
            files={"file": ("Notes.docx", b"x", "application/octet-stream")},
            headers={"Authorization": f"Bearer {app_token}"},
        )

        assert response.json()["owner_id"] == "u-alice"

    def test_no_file_400(self, client):
        response = client.post("/api/documents/upload", data={"other": "field"})

        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded"}

    def test_bad_extension_400(self, client):
        response = client.post(
            "/api/documents/upload", files={"file": ("run.sh", b"#!", "text/plain")}
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid file type")

    def test_too_large_413(self, client, proxy):
        proxy.config.max_upload_bytes = 3

        response = client.post(
            "/api/documents/upload", files={"file": ("a.docx", b"four", "application/octet-stream")}
        )

        assert response.status_code == 413
        assert response.json() == {"error": "File too large"}
        assert client.get("/documents/list").json() == []

    def test_requires_app_auth(self, locked_down):
        with TestClient(locked_down.api) as client:
            response = client.post(
                "/api/documents/upload",
                files={"file": ("a.docx", b"x", "application/octet-stream")},
            )

        assert response.status_code == 401


class TestAccessTokenIssuance:
    def test_issue_edit_token(self, client, proxy):
        file_id = upload(client).json()["id"]

        response = client.post(f"/api/documents/{file_id}/token")

        assert response.status_code == 200
        body = response.json()
        assert body["access_token_ttl"] == 3_600_000
        assert body["document_type"] == "document"
        query = parse_qs(urlparse(body["iframe_src"]).query)
        assert query["WOPISrc"] == [f"http://wopi.test:8080/wopi/files/{file_id}"]
        assert query["access_token"] == [body["access_token"]]

        access = proxy.tokens.validate(body["access_token"])
        assert access.user_id == "demo-user-001"
        assert access.can_write

    def test_issue_view_token(self, client, proxy):
        file_id = upload(client).json()["id"]

        response = client.post(f"/api/documents/{file_id}/token", json={"permissions": "view"})

        assert proxy.tokens.validate(response.json()["access_token"]).permission == "view"

    def test_unknown_document_404(self, client):
        assert client.post("/api/documents/missing/token").status_code == 404

    def test_bad_permission_400(self, client):
        file_id = upload(client).json()["id"]

        response = client.post(f"/api/documents/{file_id}/token", json={"permissions": "admin"})

        assert response.status_code == 400


class EchoEndpoint(BaseEndpoint):
    name = "echo"

    async def ping(self, count: int = 1) -> dict:
        """Reply with the count."""
        return {"pong": count}

    @POST
    async def whoami(self) -> dict:
        return {"user": self.user.id}


class TestRegisterEndpoint:
    def test_generated_routes(self, proxy, alice):
        app = FastAPI()
        register_api_endpoint(app, EchoEndpoint(None, proxy=proxy))

        @app.middleware("http")
        async def as_alice(request, call_next):
            request.state.user = alice
            return await call_next(request)

        client = TestClient(app)
        assert client.get("/echo/ping", params={"count": 3}).json() == {"pong": 3}
        assert client.get("/echo/ping").json() == {"pong": 1}
        assert client.post("/echo/whoami", json={}).json() == {"user": "u-alice"}

    def test_query_validation(self, proxy):
        app = FastAPI()
        register_api_endpoint(app, EchoEndpoint(None, proxy=proxy))

        response = TestClient(app).get("/echo/ping", params={"count": "many"})

        assert response.status_code == 422
