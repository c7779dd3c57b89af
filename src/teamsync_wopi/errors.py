# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""WOPI error taxonomy.

Every failure the protocol layer can report is a WopiError subclass carrying
the HTTP status it maps to. The API layer converts them into WOPI-shaped
responses (``{"error": message}`` plus ``X-WOPI-Lock`` for conflicts), so the
editing engine never sees anything else.

Classes:
    WopiError: Base class (status_code, message).
    AuthenticationFailure: Missing, malformed, expired or wrong-kind token (401).
    AuthorizationFailure: Valid token, wrong file or insufficient permission (403).
    FileNotFound: Unknown file identifier (404).
    LockConflict: Lock token mismatch (409), carries the current lock.
    BadRequest: Malformed request, e.g. missing lock header (400).
    UnknownOperation: Missing or unknown X-WOPI-Override value (400).
    UnsupportedOperation: Recognised but unsupported operation (501).
    InvalidUpload: Rejected upload payload (400).
    UploadTooLarge: Upload exceeds the configured size limit (413).
"""

from __future__ import annotations


class WopiError(Exception):
    """Base class for errors surfaced as WOPI HTTP responses."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationFailure(WopiError):
    """Token missing or invalid. The message never says which check failed."""

    status_code = 401
    default_message = "Invalid or expired token"


class AuthorizationFailure(WopiError):
    status_code = 403
    default_message = "Token not valid for this file"


class FileNotFound(WopiError):
    status_code = 404
    default_message = "File not found"


class LockConflict(WopiError):
    """Lock token mismatch. ``lock_id`` is the lock currently held ("" if none)."""

    status_code = 409
    default_message = "Lock mismatch"

    def __init__(self, lock_id: str, message: str | None = None):
        super().__init__(message)
        self.lock_id = lock_id


class BadRequest(WopiError):
    status_code = 400
    default_message = "Bad request"


class UnknownOperation(BadRequest):
    status_code = 400
    default_message = "Unknown WOPI operation"


class UnsupportedOperation(WopiError):
    status_code = 501
    default_message = "Not implemented"


class InvalidUpload(BadRequest):
    status_code = 400
    default_message = "Invalid upload"


class UploadTooLarge(WopiError):
    status_code = 413
    default_message = "File too large"


__all__ = [
    "AuthenticationFailure",
    "AuthorizationFailure",
    "BadRequest",
    "FileNotFound",
    "InvalidUpload",
    "LockConflict",
    "UnknownOperation",
    "UnsupportedOperation",
    "UploadTooLarge",
    "WopiError",
]
