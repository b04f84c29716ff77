"""Per-route auth policy markers, checked when the app is built.

Every Route endpoint must be wrapped in ``protected_api`` or ``public_route``.
``validate_route_auth_policy`` refuses to build an app with an unmarked
route, so a new endpoint cannot go live without a decision about auth.
"""

from __future__ import annotations

import functools
import inspect
from enum import StrEnum
from typing import TYPE_CHECKING

from starlette.authentication import requires
from starlette.routing import Route

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from typing import Any

    from starlette.routing import BaseRoute

AUTH_POLICY_ATTR = "__auth_policy__"


class RoutePolicy(StrEnum):
    PROTECTED_API = "protected_api"
    PUBLIC = "public"


def route_policy(endpoint: Callable[..., Any]) -> RoutePolicy | None:
    return getattr(endpoint, AUTH_POLICY_ATTR, None)


def protected_api(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Require the ``authenticated`` scope; anonymous callers get HTTPException(401)."""
    wrapped = requires("authenticated", status_code=401)(endpoint)
    setattr(wrapped, AUTH_POLICY_ATTR, RoutePolicy.PROTECTED_API)
    return wrapped


def public_route(endpoint: Callable[..., Any]) -> Callable[..., Any]:
    """Mark an endpoint as reachable without a session.

    The marker goes on a fresh wrapper so the same function can be mounted
    elsewhere under a different policy.
    """
    if inspect.iscoroutinefunction(endpoint):

        @functools.wraps(endpoint)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return await endpoint(*args, **kwargs)

    else:

        @functools.wraps(endpoint)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return endpoint(*args, **kwargs)

    setattr(wrapper, AUTH_POLICY_ATTR, RoutePolicy.PUBLIC)
    return wrapper


def collect_protected_api_paths(routes: Iterable[BaseRoute]) -> set[str]:
    """Paths whose 401s get the uniform authentication-failed body."""
    return {
        route.path
        for route in routes
        if isinstance(route, Route) and route_policy(route.endpoint) is RoutePolicy.PROTECTED_API
    }


def validate_route_auth_policy(routes: Iterable[BaseRoute]) -> None:
    """Raise RuntimeError naming every Route without a policy marker.

    Only plain Routes are checked; mounts carry their own sub-apps.
    """
    unmarked = [
        f"{route.path} ({route.name})"
        for route in routes
        if isinstance(route, Route) and route_policy(route.endpoint) is None
    ]
    if unmarked:
        msg = f"Unclassified routes missing auth policy: {', '.join(unmarked)}"
        raise RuntimeError(msg)
