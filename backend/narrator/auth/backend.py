"""Starlette AuthenticationBackend that validates bearer session tokens."""

from __future__ import annotations

from http import HTTPStatus
from typing import TYPE_CHECKING

import structlog
from starlette.authentication import AuthCredentials, AuthenticationBackend, AuthenticationError
from starlette.responses import JSONResponse

from common.auth.exceptions import SessionExpired, SessionNotFound, StoreUnavailable
from narrator.auth.models import AuthenticatedUser

if TYPE_CHECKING:
    from starlette.requests import HTTPConnection

    from common.auth.service import SessionAuthenticator

logger = structlog.get_logger()

AUTH_FAILED_BODY = {"error": "Authentication failed"}
UNAVAILABLE_BODY = {"error": "Service unavailable"}
WWW_AUTHENTICATE = {"WWW-Authenticate": "Bearer"}


class SessionStoreUnavailableError(AuthenticationError):
    """Raised by the backend when the session store cannot be reached."""


def parse_bearer_token(header: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header value."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        return None
    return token


class BearerTokenBackend(AuthenticationBackend):
    """Authenticate requests via the ``Authorization: Bearer`` header.

    Requests without a usable token stay anonymous; the route policy decides
    whether that is allowed. Rejected tokens are logged with the failure kind
    but are indistinguishable from missing ones to the client.
    """

    def __init__(self, authenticator: SessionAuthenticator) -> None:
        self._authenticator = authenticator

    async def authenticate(
        self,
        conn: HTTPConnection,
    ) -> tuple[AuthCredentials, AuthenticatedUser] | None:
        token = parse_bearer_token(conn.headers.get("authorization"))
        if token is None:
            return None

        try:
            session = self._authenticator.get_session(token)
        except (SessionNotFound, SessionExpired) as exc:
            logger.info("bearer token rejected", kind=exc.kind, path=conn.url.path)
            return None
        except StoreUnavailable as exc:
            raise SessionStoreUnavailableError(str(exc)) from exc

        return AuthCredentials(["authenticated"]), AuthenticatedUser(
            identifier=session.identifier,
            expires_at=session.expires_at,
        )


def on_auth_error(_conn: HTTPConnection, exc: Exception) -> JSONResponse:
    """Render AuthenticationMiddleware failures: 503 for store outages, 401 otherwise."""
    if isinstance(exc, SessionStoreUnavailableError):
        return JSONResponse(UNAVAILABLE_BODY, status_code=HTTPStatus.SERVICE_UNAVAILABLE)
    return JSONResponse(AUTH_FAILED_BODY, status_code=HTTPStatus.UNAUTHORIZED, headers=WWW_AUTHENTICATE)
