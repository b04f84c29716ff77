"""User model for Starlette AuthenticationMiddleware integration."""

from __future__ import annotations

from starlette.authentication import BaseUser


class AuthenticatedUser(BaseUser):
    """Authenticated caller exposed as Starlette's request.user.

    Created by the bearer-token backend from a validated session.
    """

    def __init__(self, identifier: str, expires_at: float) -> None:
        self._identifier = identifier
        self._expires_at = expires_at

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self._identifier

    @property
    def identity(self) -> str:
        return self._identifier

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def expires_at(self) -> float:
        return self._expires_at
