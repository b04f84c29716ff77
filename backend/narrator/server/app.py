from __future__ import annotations

import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING, cast

import structlog
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware.authentication import AuthenticationMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from common.auth import FileUserStore, InMemorySessionStore, SessionAuthenticator, StoreUnavailable
from common.auth.password import get_hasher
from common.auth.settings import AuthSettings
from common.build_info import APP_VERSION
from common.logging import setup_logging
from narrator.auth.backend import (
    AUTH_FAILED_BODY,
    UNAVAILABLE_BODY,
    WWW_AUTHENTICATE,
    BearerTokenBackend,
    on_auth_error,
)
from narrator.auth.policy import collect_protected_api_paths, protected_api, public_route, validate_route_auth_policy
from narrator.server.middleware import SecurityHeadersMiddleware, SlashNormalizationMiddleware
from narrator.server.settings import NarratorServerSettings
from narrator.views import current_user, login, logout, register

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

    from starlette.requests import Request

    from common.auth import SessionStore, UserStore


def _make_auth_error_handler(
    protected_api_paths: set[str],
) -> Callable[[Request, Exception], Awaitable[Response]]:
    """Build an HTTPException handler that renders errors as JSON."""

    async def _auth_error_handler(request: Request, exc: Exception) -> Response:
        """Give 401s on protected endpoints the uniform authentication-failed body.

        Bodyless statuses stay empty; everything else carries the exception
        detail under ``error``.
        """
        http_exc = cast("HTTPException", exc)
        if http_exc.status_code == HTTPStatus.UNAUTHORIZED and request.url.path in protected_api_paths:
            return JSONResponse(AUTH_FAILED_BODY, status_code=HTTPStatus.UNAUTHORIZED, headers=WWW_AUTHENTICATE)
        if http_exc.status_code in {HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED}:
            return Response(status_code=http_exc.status_code, headers=http_exc.headers)
        return JSONResponse({"error": http_exc.detail}, status_code=http_exc.status_code, headers=http_exc.headers)

    return _auth_error_handler


async def _store_unavailable_handler(_request: Request, _exc: Exception) -> JSONResponse:
    return JSONResponse(UNAVAILABLE_BODY, status_code=HTTPStatus.SERVICE_UNAVAILABLE)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", "version": APP_VERSION})


def create_app(
    settings: NarratorServerSettings | None = None,
    auth_settings: AuthSettings | None = None,
    *,
    user_store: UserStore | None = None,
    session_store: SessionStore | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = NarratorServerSettings()
    if auth_settings is None:  # pragma: no cover
        auth_settings = AuthSettings()

    routes = [
        # Protected JSON routes (401 without a valid bearer token)
        Route("/api/user", protected_api(current_user), methods=["GET"], name="current_user"),
        # Public routes
        Route("/health", public_route(health), methods=["GET"], name="health"),
        Route("/login", public_route(login), methods=["POST"], name="login"),
        Route("/logout", public_route(logout), methods=["POST"], name="logout"),
        Route("/register", public_route(register), methods=["POST"], name="register"),
    ]

    validate_route_auth_policy(routes)
    protected_api_paths = collect_protected_api_paths(routes)

    if user_store is None:
        user_store = FileUserStore(auth_settings.users_file)
    if session_store is None:
        session_store = InMemorySessionStore()
    hasher = get_hasher(auth_settings.password_hasher, cost=auth_settings.hash_cost)
    authenticator = SessionAuthenticator(user_store, session_store, password_hasher=hasher, settings=auth_settings)

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncGenerator[None]:
        await authenticator.prepare()
        if isinstance(session_store, InMemorySessionStore):
            session_store.start_cleanup()
        yield
        if isinstance(session_store, InMemorySessionStore):
            await session_store.stop_cleanup()

    app = Starlette(
        routes=routes,
        lifespan=lifespan,
        exception_handlers={
            HTTPException: _make_auth_error_handler(protected_api_paths),
            StoreUnavailable: _store_unavailable_handler,
        },
    )
    app.add_middleware(SlashNormalizationMiddleware)  # type: ignore[arg-type]
    app.add_middleware(
        AuthenticationMiddleware,  # type: ignore[arg-type]
        backend=BearerTokenBackend(authenticator),
        on_error=on_auth_error,
    )
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)  # type: ignore[arg-type]
    app.add_middleware(SecurityHeadersMiddleware)  # type: ignore[arg-type]

    app.state.settings = settings
    app.state.auth_settings = auth_settings
    app.state.authenticator = authenticator
    app.state.session_store = session_store

    logger.info("narrator server ready", session_ttl_seconds=auth_settings.ttl.total_seconds())
    return app


def get_app() -> Starlette:  # pragma: no cover
    """Factory function for uvicorn --factory narrator.server.app:get_app."""
    s = NarratorServerSettings()
    auth = AuthSettings()
    setup_logging(log_dir=s.log_dir)
    return create_app(settings=s, auth_settings=auth)
