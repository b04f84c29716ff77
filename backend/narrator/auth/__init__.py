"""Narrator API authentication: bearer-token backend, user model, and route policy."""

from narrator.auth.backend import BearerTokenBackend, on_auth_error, parse_bearer_token
from narrator.auth.models import AuthenticatedUser
from narrator.auth.policy import protected_api, public_route, validate_route_auth_policy

__all__ = [
    "AuthenticatedUser",
    "BearerTokenBackend",
    "on_auth_error",
    "parse_bearer_token",
    "protected_api",
    "public_route",
    "validate_route_auth_policy",
]
