# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Main WopiProxy class: WOPI protocol implementation.

WopiProxy extends WopiServerBase with the WOPI protocol handlers called by
the editing engine, plus the host-side token issuance that starts an editing
session.

Every handler authenticates the access token first (401), then checks that
the token is scoped to the addressed file (403), then that the file exists
(404). Handlers are transport-independent: they raise WopiError subclasses
that the API layer maps to status codes and headers.

Usage:
    from teamsync_wopi.wopi_proxy import WopiProxy
    from teamsync_wopi.wopi_config import WopiConfig

    proxy = WopiProxy(config=WopiConfig(jwt_secret="s3cret"))

    # As FastAPI app
    app = proxy.api

    # Or run directly
    await proxy.start()
    access = await proxy.issue_access("doc-1", user, "edit")
    info = await proxy.check_file_info("doc-1", access["access_token"])
    await proxy.stop()
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from .discovery import classify
from .entities.lock import LockResult
from .errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    BadRequest,
    LockConflict,
    UnknownOperation,
    UnsupportedOperation,
    UploadTooLarge,
)
from .tokens import AccessToken, User
from .wopi_base import WopiServerBase
from .wopi_config import WopiConfig

if TYPE_CHECKING:
    import click

    from .entities.document import Document

logger = logging.getLogger(__name__)

LOCK_OPERATIONS = ("LOCK", "REFRESH_LOCK", "UNLOCK", "UNLOCK_AND_RELOCK")


class WopiProxy(WopiServerBase):
    """WOPI protocol host.

    Attributes:
        config: WopiConfig instance
        tokens: TokenService
        documents: DocumentsTable
        locks: LocksTable
        resolver: DiscoveryResolver
        endpoints: Dict of endpoint instances

    WOPI Protocol:
        - CheckFileInfo: File metadata and capabilities
        - GetFile: Download file content
        - PutFile: Save edited file (lock-checked)
        - LOCK, GET_LOCK, REFRESH_LOCK, UNLOCK, UNLOCK_AND_RELOCK
        - RENAME_FILE, PUT_USER_INFO
    """

    def __init__(self, config: WopiConfig | None = None):
        """Initialize WopiProxy.

        Args:
            config: WopiConfig instance. If None, creates default.
        """
        super().__init__(config)
        self.active = False
        self._user_info: dict[str, str] = {}

    async def start(self) -> None:
        """Load storage and begin accepting requests."""
        await self.init()
        self.resolver.open()
        self.active = True
        logger.info(f"WopiProxy '{self.config.instance_name}' started")

    async def stop(self) -> None:
        """Stop accepting requests and release the discovery HTTP client."""
        self.active = False
        await self.resolver.aclose()
        logger.info(f"WopiProxy '{self.config.instance_name}' stopped")

    # -------------------------------------------------------------------------
    # Host side: sessions and application login
    # -------------------------------------------------------------------------

    async def issue_access(self, file_id: str, user: User, permission: str = "edit") -> dict:
        """Issue a WOPI access token and editor iframe URL for a document.

        Args:
            file_id: Stored document id.
            user: Application user opening the document.
            permission: "edit" or "view".

        Returns:
            Dict with access_token, access_token_ttl (milliseconds),
            iframe_src and document_type.

        Raises:
            FileNotFound: Unknown file.
            BadRequest: Unknown permission.
        """
        doc = await self.documents.require(file_id)
        try:
            token = self.tokens.issue(file_id, user, permission)
        except ValueError as e:
            raise BadRequest(str(e)) from None

        iframe_src = await self.resolver.build_iframe_src(file_id, token, doc.name)
        logger.info(f"Token issued: {doc.name} for {user.name} ({permission})")
        return {
            "access_token": token,
            "access_token_ttl": self.tokens.ttl_ms,
            "iframe_src": iframe_src,
            "document_type": classify(doc.name).value,
        }

    async def login(
        self,
        user_id: str | None = None,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> dict:
        """Issue an application token. Missing fields default to the demo user."""
        demo = self.demo_user
        user = User(
            id=user_id or demo.id,
            name=user_name or demo.name,
            email=user_email or demo.email,
        )
        return {
            "token": self.tokens.issue_app_token(user),
            "expires_in": self.tokens.ttl_seconds,
            "user": {"id": user.id, "name": user.name, "email": user.email},
        }

    # -------------------------------------------------------------------------
    # WOPI protocol handlers
    # -------------------------------------------------------------------------

    async def authorize(self, file_id: str, access_token: str | None) -> AccessToken:
        """Validate a WOPI access token for file_id.

        Raises:
            AuthenticationFailure: Token missing or invalid.
            AuthorizationFailure: Token scoped to another file.
        """
        if not access_token:
            raise AuthenticationFailure()
        access = self.tokens.validate(access_token)
        if access is None:
            raise AuthenticationFailure()
        if access.file_id != file_id:
            logger.warning(f"WOPI token for {access.file_id} presented for {file_id}")
            raise AuthorizationFailure()
        return access

    async def check_file_info(self, file_id: str, access_token: str | None) -> dict[str, Any]:
        """WOPI CheckFileInfo: file metadata, user rights and host capabilities."""
        access = await self.authorize(file_id, access_token)
        doc = await self.documents.require(file_id)
        public_url = self.config.public_url.rstrip("/")
        can_write = access.can_write
        logger.info(f"WOPI CheckFileInfo: {doc.name} for {access.user_name}")

        info: dict[str, Any] = {
            "BaseFileName": doc.name,
            "OwnerId": doc.owner_id,
            "Size": doc.size,
            "UserId": access.user_id,
            "Version": doc.last_modified,
            "UserFriendlyName": access.user_name,
            "UserCanWrite": can_write,
            "UserCanNotWriteRelative": True,
            "SupportsUpdate": True,
            "SupportsLocks": True,
            "SupportsGetLock": True,
            "SupportsExtendedLockLength": True,
            "SupportsRename": True,
            "SupportsDeleteFile": False,
            "SupportsCobalt": False,
            "SupportsFolders": False,
            "SupportsUserInfo": True,
            "IsAnonymousUser": False,
            "ReadOnly": not can_write,
            "RestrictedWebViewOnly": False,
            "LastModifiedTime": doc.last_modified,
            "CloseUrl": public_url,
            "HostEditUrl": f"{public_url}/?doc={file_id}",
            "HostViewUrl": f"{public_url}/?doc={file_id}&mode=view",
            "PostMessageOrigin": public_url,
            "EnableInsertRemoteImage": False,
            "DisableExport": False,
            "DisablePrint": False,
            "DisableCopy": False,
        }
        user_info = self._user_info.get(access.user_id)
        if user_info is not None:
            info["UserInfo"] = user_info
        return info

    async def get_file(self, file_id: str, access_token: str | None) -> tuple[bytes, str]:
        """WOPI GetFile: return (content, version)."""
        await self.authorize(file_id, access_token)
        doc = await self.documents.require(file_id)
        content = await self.documents.read(file_id)
        logger.info(f"WOPI GetFile: {doc.name} ({len(content)} bytes)")
        return content, doc.last_modified

    async def put_file(
        self,
        file_id: str,
        access_token: str | None,
        content: bytes,
        lock_id: str | None = None,
    ) -> Document:
        """WOPI PutFile: overwrite the file content.

        Write permission is checked before the lock. Without a held lock the
        write is accepted; with one, lock_id must match it.

        Raises:
            AuthorizationFailure: View-only token.
            LockConflict: Lock held with a different id.
            UploadTooLarge: Body larger than max_upload_bytes.
        """
        access = await self.authorize(file_id, access_token)
        if not access.can_write:
            raise AuthorizationFailure("Write permission required")
        await self.documents.require(file_id)
        if len(content) > self.config.max_upload_bytes:
            logger.info(f"WOPI PutFile rejected: {file_id} body of {len(content)} bytes")
            raise UploadTooLarge()

        async with self.locks.guard(file_id):
            check = self.locks.check_write(file_id, lock_id)
            if not check.ok:
                logger.info(f"WOPI PutFile rejected: {file_id} lock mismatch")
                raise LockConflict(check.lock_id)
            doc = await self.documents.put(file_id, content)

        logger.info(f"WOPI PutFile: {doc.name} ({doc.size} bytes) by {access.user_name}")
        return doc

    async def lock_operation(
        self,
        file_id: str,
        access_token: str | None,
        override: str | None,
        lock_id: str | None = None,
        old_lock_id: str | None = None,
        requested_name: str | None = None,
        body: bytes = b"",
    ) -> LockResult | dict | None:
        """Dispatch a POST /wopi/files/{id} operation selected by X-WOPI-Override.

        Returns:
            LockResult for lock operations (its lock_id goes to X-WOPI-Lock),
            {"Name": ...} for RENAME_FILE, None for PUT_USER_INFO.

        Raises:
            UnknownOperation: Missing or unknown override.
            UnsupportedOperation: PUT_RELATIVE.
            BadRequest: Lock operation without X-WOPI-Lock.
            AuthorizationFailure: Mutation with a view-only token.
            LockConflict: Lock mismatch, carrying the current lock.
        """
        access = await self.authorize(file_id, access_token)
        doc = await self.documents.require(file_id)
        operation = (override or "").upper()

        if operation == "GET_LOCK":
            return LockResult(True, await self.locks.get_lock(file_id))
        if operation == "PUT_RELATIVE":
            raise UnsupportedOperation()
        if operation == "PUT_USER_INFO":
            self._user_info[access.user_id] = body.decode("utf-8", errors="replace")
            return None
        if operation not in (*LOCK_OPERATIONS, "RENAME_FILE"):
            raise UnknownOperation()

        if not access.can_write:
            raise AuthorizationFailure("Write permission required")

        if operation == "RENAME_FILE":
            return await self._rename(doc, lock_id, requested_name)

        if not lock_id:
            raise BadRequest("X-WOPI-Lock header required")

        if operation == "LOCK":
            result = await self.locks.lock(file_id, lock_id, access.user_id)
            conflict_message = "Lock conflict"
        elif operation == "REFRESH_LOCK":
            result = await self.locks.refresh_lock(file_id, lock_id)
            conflict_message = None
        elif operation == "UNLOCK":
            result = await self.locks.unlock(file_id, lock_id)
            conflict_message = None
        else:
            if not old_lock_id:
                raise BadRequest("X-WOPI-OldLock header required")
            result = await self.locks.unlock_and_relock(
                file_id, old_lock_id, lock_id, access.user_id
            )
            conflict_message = None

        if not result.ok:
            raise LockConflict(result.lock_id, conflict_message)
        return result

    async def _rename(
        self, doc: Document, lock_id: str | None, requested_name: str | None
    ) -> dict:
        """RENAME_FILE: rename when a name is given, return the resulting name."""
        new_name = unquote(requested_name) if requested_name else ""
        if not new_name:
            return {"Name": doc.name}

        async with self.locks.guard(doc.id):
            check = self.locks.check_write(doc.id, lock_id)
            if not check.ok:
                raise LockConflict(check.lock_id)
            doc = await self.documents.rename(doc.id, new_name)

        logger.info(f"WOPI Renamed: {doc.id} -> {doc.name}")
        return {"Name": doc.name}

    # -------------------------------------------------------------------------
    # CLI
    # -------------------------------------------------------------------------

    def _create_cli(self) -> click.Group:
        """Add the issue-token command to the base CLI."""
        import click

        from .errors import WopiError

        cli = super()._create_cli()

        @cli.command("issue-token")
        @click.argument("file_id")
        @click.option(
            "--permission",
            type=click.Choice(["edit", "view"]),
            default="edit",
            show_default=True,
        )
        @click.option("--user-id", default=None, help="Token holder id (default: demo user)")
        @click.option("--user-name", default=None, help="Token holder display name")
        def issue_token_cmd(
            file_id: str, permission: str, user_id: str | None, user_name: str | None
        ) -> None:
            """Issue a WOPI access token and editor URL for a stored document."""
            demo = self.demo_user
            user = User(
                id=user_id or demo.id,
                name=user_name or user_id or demo.name,
                email=None if user_id else demo.email,
            )

            async def run() -> dict:
                await self.init()
                return await self.issue_access(file_id, user, permission)

            try:
                result = asyncio.run(run())
            except WopiError as e:
                raise click.ClickException(e.message) from e
            click.echo(json.dumps(result, indent=2))

        return cli


__all__ = ["WopiProxy"]
