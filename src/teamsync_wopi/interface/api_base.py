# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application: generated endpoint routes plus the WOPI protocol routes.

Host application routes are generated from endpoint classes by
introspecting method signatures (GET with query parameters, @POST with a
JSON body). They are protected by an application token
(``Authorization: Bearer``).

WOPI routes are called by the editing engine and authenticate with the WOPI
access token (``access_token`` query parameter, or a Bearer header).

Components:
    create_app: FastAPI application factory.
    register_endpoint: Register endpoint methods as FastAPI routes.
    require_app_user: Application authentication dependency.

Example:
    Create and run the API server::

        from teamsync_wopi.interface import create_app
        from teamsync_wopi.wopi_proxy import WopiProxy

        proxy = WopiProxy(config=WopiConfig(jwt_secret="s3cret"))
        app = create_app(proxy)

        import uvicorn
        uvicorn.run(app, host="0.0.0.0", port=8080)

Note:
    Every WopiError raised by a handler becomes ``{"error": message}`` with
    its status code. Lock conflicts also carry ``X-WOPI-Lock``. Unexpected
    failures in WOPI routes are logged and answered with a bare 500.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any, TypeVar

from fastapi import APIRouter, Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ..entities.lock import LockResult
from ..errors import AuthenticationFailure, InvalidUpload, LockConflict, WopiError
from .endpoint_base import BaseEndpoint, current_user

if TYPE_CHECKING:
    from ..wopi_proxy import WopiProxy

logger = logging.getLogger(__name__)

T = TypeVar("T")

bearer_scheme = HTTPBearer(auto_error=False)


def register_endpoint(app: FastAPI | APIRouter, endpoint: BaseEndpoint, prefix: str = "") -> None:
    """Register all methods of an endpoint as FastAPI routes.

    Args:
        app: FastAPI app or APIRouter to register routes on.
        endpoint: Endpoint instance.
        prefix: Optional URL prefix. Defaults to /{endpoint.name}.

    Example:
        ::

            register_endpoint(router, DocumentEndpoint(documents, proxy))
            # GET /documents/list, GET /documents/get, POST /documents/upload, ...
    """
    base_path = prefix or f"/{endpoint.name}"

    for method_name, method in endpoint.get_methods():
        path = f"{base_path}/{method_name}"
        doc = method.__doc__ or f"{method_name} operation"

        if endpoint.get_http_method(method_name) == "GET":
            _register_query_route(app, path, method, doc, endpoint.get_params(method_name))
        else:
            _register_body_route(app, path, method, doc, endpoint.create_request_model(method_name))


def _register_query_route(
    app: FastAPI | APIRouter,
    path: str,
    method: Callable,
    doc: str,
    params: list[tuple[str, Any, Any]],
) -> None:
    """Register a GET route with query parameters."""

    async def handler(request: Request, **kwargs: Any) -> Any:
        token = current_user.set(getattr(request.state, "user", None))
        try:
            return await method(**kwargs)
        finally:
            current_user.reset(token)

    new_params = [
        inspect.Parameter(
            name="request",
            kind=inspect.Parameter.POSITIONAL_OR_KEYWORD,
            annotation=Request,
        )
    ] + [
        inspect.Parameter(
            name=name,
            kind=inspect.Parameter.KEYWORD_ONLY,
            default=Query(...) if default is inspect.Parameter.empty else Query(default),
            annotation=annotation,
        )
        for name, annotation, default in params
    ]
    handler.__signature__ = inspect.Signature(parameters=new_params)  # type: ignore
    handler.__doc__ = doc

    app.get(path, summary=doc.split("\n")[0])(handler)


def _make_body_handler(method: Callable, RequestModel: type) -> Callable:
    """Create handler that accepts a JSON body and calls method."""

    async def handler(request: Request, data: RequestModel) -> Any:  # type: ignore
        token = current_user.set(getattr(request.state, "user", None))
        try:
            return await method(**data.model_dump())
        finally:
            current_user.reset(token)

    handler.__signature__ = inspect.Signature(  # type: ignore
        parameters=[
            inspect.Parameter(
                "request",
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                annotation=Request,
            ),
            inspect.Parameter(
                "data",
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                annotation=RequestModel,
            ),
        ]
    )
    return handler


def _register_body_route(
    app: FastAPI | APIRouter,
    path: str,
    method: Callable,
    doc: str,
    RequestModel: type,
) -> None:
    """Register a POST route with a JSON request body."""
    handler = _make_body_handler(method, RequestModel)
    handler.__doc__ = doc
    app.post(path, summary=doc.split("\n")[0])(handler)


# =============================================================================
# Authentication
# =============================================================================


async def require_app_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """Authenticate a host application request.

    Accepts an application token in ``Authorization: Bearer``. Without a
    header the configured demo user is used when allow_demo_user is set.
    The resolved user is stored in request.state.user.

    Raises:
        AuthenticationFailure: Missing header (demo user disabled) or
            invalid token.
    """
    svc: WopiProxy = request.app.state.proxy

    if credentials is None:
        if not svc.config.allow_demo_user:
            raise AuthenticationFailure("Authentication required")
        request.state.user = svc.demo_user
        return

    user = svc.tokens.validate_app_token(credentials.credentials)
    if user is None:
        raise AuthenticationFailure()
    request.state.user = user


auth_dependency = Depends(require_app_user)


def _wopi_token(request: Request, access_token: str | None) -> str | None:
    """Return the WOPI token from the query string or a Bearer header."""
    if access_token:
        return access_token
    authorization = request.headers.get("authorization", "")
    scheme, _, value = authorization.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


async def _run_wopi(operation: str, call: Awaitable[T]) -> T:
    """Await a WOPI handler, turning unexpected failures into a bare 500."""
    try:
        return await call
    except WopiError:
        raise
    except Exception:
        logger.exception(f"WOPI {operation} failed")
        raise WopiError() from None


# =============================================================================
# Application factory
# =============================================================================


def create_app(
    svc: WopiProxy,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager[None]] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        svc: WopiProxy instance implementing the protocol and services.
        lifespan: Optional lifespan context manager. If None, creates a
            default that starts/stops the proxy.

    Returns:
        Configured FastAPI application with all routes registered.
    """
    if lifespan is None:

        @asynccontextmanager
        async def default_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
            """Default lifespan: start and stop the WopiProxy service."""
            logger.info("Starting teamsync-wopi service...")
            await svc.start()
            logger.info("teamsync-wopi service started")
            try:
                yield
            finally:
                logger.info("Stopping teamsync-wopi service...")
                await svc.stop()
                logger.info("teamsync-wopi service stopped")

        lifespan = default_lifespan

    app = FastAPI(title="TeamSync WOPI Host", lifespan=lifespan)
    app.state.proxy = svc

    # The editor iframe and the host page live on different origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-WOPI-Lock", "X-WOPI-ItemVersion"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle FastAPI request validation errors with detailed logging."""
        logger.error(f"Validation error on {request.method} {request.url.path}")
        logger.error(f"Validation errors: {exc.errors()}")
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(WopiError)
    async def wopi_exception_handler(request: Request, exc: WopiError) -> JSONResponse:
        """Convert WopiError into the WOPI error shape."""
        headers = {"X-WOPI-Lock": exc.lock_id} if isinstance(exc, LockConflict) else None
        return JSONResponse(
            status_code=exc.status_code, content={"error": exc.message}, headers=headers
        )

    _register_service_endpoints(app, svc)
    _register_entity_endpoints(app, svc)
    _register_wopi_endpoints(app, svc)

    return app


def _register_entity_endpoints(app: FastAPI, svc: WopiProxy) -> None:
    """Register discovered entity endpoints behind application auth."""
    router = APIRouter(dependencies=[auth_dependency])
    for endpoint in svc.endpoints.values():
        register_endpoint(router, endpoint)
    app.include_router(router)


class AppTokenRequest(BaseModel):
    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None


class AccessRequest(BaseModel):
    permissions: str = "edit"


def _register_service_endpoints(app: FastAPI, svc: WopiProxy) -> None:
    """Register health, application login, multipart upload and WOPI token issuance."""

    @app.get("/health")
    async def health() -> dict:
        """Health check for container orchestration (no authentication)."""
        return await svc.endpoint("instance").health()

    if svc.config.allow_demo_user:

        @app.post("/api/auth/token")
        async def issue_app_token(body: AppTokenRequest | None = None) -> dict:
            """Issue an application token (demo login).

            Missing fields default to the configured demo user.
            """
            body = body or AppTokenRequest()
            return await svc.login(body.user_id, body.user_name, body.user_email)

    @app.post("/api/documents/upload", dependencies=[auth_dependency])
    async def upload_document(request: Request, file: UploadFile | None = File(None)) -> dict:
        """Store a document sent as the multipart form field ``file``."""
        from ..entities.document.endpoint import store_upload

        if file is None or not file.filename:
            raise InvalidUpload("No file uploaded")
        limit = svc.config.max_upload_bytes
        data = await file.read(limit + 1)
        return await store_upload(
            svc.documents, file.filename, data, request.state.user.id, limit
        )

    @app.post("/api/documents/{file_id}/token", dependencies=[auth_dependency])
    async def issue_access_token(
        file_id: str, request: Request, body: AccessRequest | None = None
    ) -> dict:
        """Issue a WOPI access token and the editor iframe URL for a document."""
        body = body or AccessRequest()
        return await svc.issue_access(file_id, request.state.user, body.permissions)


def _register_wopi_endpoints(app: FastAPI, svc: WopiProxy) -> None:
    """Register the WOPI protocol endpoints called by the editing engine."""

    @app.get("/wopi/files/{file_id}")
    async def wopi_check_file_info(
        file_id: str,
        request: Request,
        access_token: str | None = Query(None, description="WOPI access token"),
    ) -> dict:
        """WOPI CheckFileInfo: Return file metadata and capabilities."""
        token = _wopi_token(request, access_token)
        return await _run_wopi("CheckFileInfo", svc.check_file_info(file_id, token))

    @app.get("/wopi/files/{file_id}/contents", response_class=Response)
    async def wopi_get_file(
        file_id: str,
        request: Request,
        access_token: str | None = Query(None, description="WOPI access token"),
    ) -> Response:
        """WOPI GetFile: Download file content."""
        token = _wopi_token(request, access_token)
        content, version = await _run_wopi("GetFile", svc.get_file(file_id, token))
        return Response(
            content=content,
            media_type="application/octet-stream",
            headers={"X-WOPI-ItemVersion": version},
        )

    @app.post("/wopi/files/{file_id}/contents")
    async def wopi_put_file(
        file_id: str,
        request: Request,
        access_token: str | None = Query(None, description="WOPI access token"),
        x_wopi_lock: str | None = Header(None),
    ) -> JSONResponse:
        """WOPI PutFile: Save edited file content."""
        token = _wopi_token(request, access_token)
        content = await request.body()
        doc = await _run_wopi("PutFile", svc.put_file(file_id, token, content, x_wopi_lock))
        return JSONResponse(
            content={"LastModifiedTime": doc.last_modified, "ItemVersion": doc.last_modified},
            headers={"X-WOPI-ItemVersion": doc.last_modified},
        )

    @app.post("/wopi/files/{file_id}")
    async def wopi_file_operation(
        file_id: str,
        request: Request,
        access_token: str | None = Query(None, description="WOPI access token"),
        x_wopi_override: str | None = Header(None),
        x_wopi_lock: str | None = Header(None),
        x_wopi_oldlock: str | None = Header(None),
        x_wopi_requestedname: str | None = Header(None),
    ) -> Response:
        """WOPI file operations selected by X-WOPI-Override.

        LOCK, GET_LOCK, REFRESH_LOCK, UNLOCK, UNLOCK_AND_RELOCK, RENAME_FILE,
        PUT_USER_INFO. PUT_RELATIVE answers 501.
        """
        token = _wopi_token(request, access_token)
        body = await request.body()
        result = await _run_wopi(
            x_wopi_override or "operation",
            svc.lock_operation(
                file_id,
                token,
                x_wopi_override,
                lock_id=x_wopi_lock,
                old_lock_id=x_wopi_oldlock,
                requested_name=x_wopi_requestedname,
                body=body,
            ),
        )
        if isinstance(result, LockResult):
            return Response(status_code=200, headers={"X-WOPI-Lock": result.lock_id})
        if isinstance(result, dict):
            return JSONResponse(content=result)
        return Response(status_code=200)


__all__ = [
    "auth_dependency",
    "bearer_scheme",
    "create_app",
    "register_endpoint",
    "require_app_user",
]
