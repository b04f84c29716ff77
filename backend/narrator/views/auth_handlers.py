"""Auth endpoints: login, logout, and registration for the narrator API."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from common.auth.exceptions import IdentifierTaken, InvalidCredentials, RegistrationError
from common.auth.models import to_iso8601
from narrator.auth.backend import AUTH_FAILED_BODY, WWW_AUTHENTICATE, parse_bearer_token

if TYPE_CHECKING:
    from starlette.requests import Request

    from common.auth.models import Session
    from common.auth.service import SessionAuthenticator

# Tokens must never be cached by intermediaries
_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}


async def _parse_json_body(request: Request) -> dict | None:
    """Parse JSON body from request. Return None on failure."""
    try:
        body = await request.json()
    except (ValueError, json.JSONDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    return body


def _credential_fields(body: dict) -> tuple[str, str]:
    """Read (identifier, secret), accepting the username/email/password names older clients send."""
    identifier = body.get("identifier", body.get("username", body.get("email")))
    secret = body.get("secret", body.get("password"))
    return (
        identifier if isinstance(identifier, str) else "",
        secret if isinstance(secret, str) else "",
    )


def _session_payload(session: Session) -> dict[str, str]:
    return {"token": session.token, "expiresAt": to_iso8601(session.expires_at)}


def _authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


async def login(request: Request) -> JSONResponse:
    """POST /login {identifier, secret} - issue a session token."""
    body = await _parse_json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=HTTPStatus.BAD_REQUEST)

    identifier, secret = _credential_fields(body)
    try:
        session = await _authenticator(request).authenticate(identifier, secret)
    except InvalidCredentials:
        return JSONResponse(AUTH_FAILED_BODY, status_code=HTTPStatus.UNAUTHORIZED, headers=WWW_AUTHENTICATE)

    return JSONResponse(_session_payload(session), headers=_NO_STORE)


async def logout(request: Request) -> JSONResponse:
    """POST /logout {token} - revoke a session. Always succeeds.

    Falls back to the bearer header when the body carries no token.
    """
    body = await _parse_json_body(request) or {}
    token = body.get("token")
    if not isinstance(token, str) or not token:
        token = parse_bearer_token(request.headers.get("authorization"))
    _authenticator(request).revoke(token)
    return JSONResponse({})


async def register(request: Request) -> JSONResponse:
    """POST /register {identifier, secret} - create an account and log it in."""
    body = await _parse_json_body(request)
    if body is None:
        return JSONResponse({"error": "Invalid JSON body"}, status_code=HTTPStatus.BAD_REQUEST)

    identifier, secret = _credential_fields(body)
    authenticator = _authenticator(request)
    try:
        record = await authenticator.register(identifier, secret)
    except IdentifierTaken:
        return JSONResponse({"error": "Identifier already registered"}, status_code=HTTPStatus.CONFLICT)
    except RegistrationError as e:
        return JSONResponse({"error": str(e)}, status_code=HTTPStatus.BAD_REQUEST)

    session = await authenticator.authenticate(identifier, secret)
    return JSONResponse(
        {
            "identifier": record.identifier,
            "createdAt": to_iso8601(record.created_at),
            **_session_payload(session),
        },
        status_code=HTTPStatus.CREATED,
        headers=_NO_STORE,
    )
