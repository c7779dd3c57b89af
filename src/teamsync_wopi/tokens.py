# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Signed, self-contained access tokens.

Two token kinds share one signing secret and are told apart by the ``type``
claim, so neither can stand in for the other:

    wopi_access: scopes one user to one file with one permission level.
        Passed to the editing engine and presented on every WOPI callback.
    app_auth: authenticates a user of the host application's own API
        (token issuance, uploads, listings).

Validation is signature + algorithm + expiry + kind. There is no server-side
revocation list: a token stays valid until it expires.

Example:
    service = TokenService(secret="s3cret", ttl_seconds=3600)
    token = service.issue("doc-1", User("u1", "Ada"), "edit")
    access = service.validate(token)
    assert access.file_id == "doc-1" and access.can_write
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt

logger = logging.getLogger(__name__)

WOPI_TOKEN_TYPE = "wopi_access"
APP_TOKEN_TYPE = "app_auth"

PERMISSION_EDIT = "edit"
PERMISSION_VIEW = "view"
_PERMISSION_ALIASES = {"edit": PERMISSION_EDIT, "view": PERMISSION_VIEW, "read": PERMISSION_VIEW}


@dataclass(frozen=True)
class User:
    """Identity of an application user."""

    id: str
    name: str
    email: str | None = None


@dataclass(frozen=True)
class AccessToken:
    """Decoded WOPI access token payload."""

    file_id: str
    permission: str
    user_id: str
    user_name: str
    user_email: str | None
    issued_at: datetime
    expires_at: datetime

    @property
    def can_write(self) -> bool:
        return self.permission == PERMISSION_EDIT


def normalize_permission(permission: str) -> str:
    """Map a permission name to "edit" or "view".

    Raises:
        ValueError: If the permission is not edit, view or read.
    """
    try:
        return _PERMISSION_ALIASES[permission.lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown permission '{permission}'") from None


class TokenService:
    """Issues and validates WOPI access tokens and application tokens.

    Attributes:
        ttl_seconds: Lifetime of issued tokens.
        algorithm: JWT signing algorithm, pinned on validation.
    """

    def __init__(self, secret: str, ttl_seconds: int = 3600, algorithm: str = "HS256"):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm

    @property
    def ttl_ms(self) -> int:
        """Token TTL in milliseconds, as reported to WOPI clients."""
        return self.ttl_seconds * 1000

    def issue(self, file_id: str, user: User, permission: str = PERMISSION_EDIT) -> str:
        """Create a signed WOPI access token for one file.

        Args:
            file_id: File the token is scoped to.
            user: Token holder.
            permission: "edit" or "view" ("read" is an alias of "view").

        Returns:
            Encoded JWT string.
        """
        now = int(time.time())
        payload = {
            "fileId": file_id,
            "permissions": normalize_permission(permission),
            "userId": user.id,
            "userName": user.name,
            "userEmail": user.email,
            "iat": now,
            "exp": now + self.ttl_seconds,
            "type": WOPI_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: str | None) -> AccessToken | None:
        """Decode a WOPI access token.

        Returns:
            AccessToken on success, None for any failure (missing, malformed,
            bad signature, expired, wrong kind).
        """
        payload = self._decode(token, WOPI_TOKEN_TYPE)
        if payload is None:
            return None
        try:
            return AccessToken(
                file_id=str(payload["fileId"]),
                permission=normalize_permission(payload["permissions"]),
                user_id=str(payload["userId"]),
                user_name=str(payload.get("userName") or payload["userId"]),
                user_email=payload.get("userEmail"),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Token rejected: malformed payload ({e})")
            return None

    def issue_app_token(self, user: User) -> str:
        """Create an application authentication token for a user."""
        now = int(time.time())
        payload = {
            "sub": user.id,
            "name": user.name,
            "email": user.email,
            "iat": now,
            "exp": now + self.ttl_seconds,
            "type": APP_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate_app_token(self, token: str | None) -> User | None:
        """Decode an application token. Returns the User or None."""
        payload = self._decode(token, APP_TOKEN_TYPE)
        if payload is None or not payload.get("sub"):
            return None
        return User(
            id=str(payload["sub"]),
            name=str(payload.get("name") or payload["sub"]),
            email=payload.get("email"),
        )

    def _decode(self, token: str | None, expected_type: str) -> dict[str, Any] | None:
        """Verify signature, algorithm, expiry and kind. Never raises."""
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token rejected: expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Token rejected: {e}")
            return None

        if payload.get("type") != expected_type:
            logger.warning(f"Token rejected: wrong type {payload.get('type')!r}")
            return None
        return payload


__all__ = [
    "APP_TOKEN_TYPE",
    "AccessToken",
    "PERMISSION_EDIT",
    "PERMISSION_VIEW",
    "TokenService",
    "User",
    "WOPI_TOKEN_TYPE",
    "normalize_permission",
]
