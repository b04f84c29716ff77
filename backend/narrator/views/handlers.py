"""Protected API endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from common.auth.models import to_iso8601

if TYPE_CHECKING:
    from starlette.requests import Request

    from narrator.auth.models import AuthenticatedUser


async def current_user(request: Request) -> JSONResponse:
    """GET /api/user - identity behind the presented bearer token."""
    user: AuthenticatedUser = request.user
    return JSONResponse({"identifier": user.identifier, "expiresAt": to_iso8601(user.expires_at)})
