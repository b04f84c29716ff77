"""Tests for the HTTPException handler that renders JSON errors."""

from __future__ import annotations

from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse, Response

from narrator.server.app import _make_auth_error_handler

_auth_error_handler = _make_auth_error_handler({"/api/user"})


def _make_request(path: str = "/api/user") -> object:
    """Build a minimal fake request with a url.path attribute."""

    class FakeURL:
        def __init__(self, path: str) -> None:
            self.path = path

    class FakeRequest:
        def __init__(self, path: str) -> None:
            self.url = FakeURL(path)

    return FakeRequest(path)


class TestAuthErrorHandler:
    async def test_401_on_protected_path_returns_uniform_body(self) -> None:
        result = await _auth_error_handler(_make_request("/api/user"), HTTPException(status_code=401))

        assert isinstance(result, JSONResponse)
        assert result.status_code == 401
        assert result.body == b'{"error":"Authentication failed"}'
        assert result.headers["www-authenticate"] == "Bearer"

    async def test_401_on_other_path_keeps_detail(self) -> None:
        result = await _auth_error_handler(_make_request("/login"), HTTPException(status_code=401))

        assert result.status_code == 401
        assert result.body == b'{"error":"Unauthorized"}'

    async def test_404_returns_json_detail(self) -> None:
        result = await _auth_error_handler(_make_request("/nope"), HTTPException(status_code=404))

        assert isinstance(result, JSONResponse)
        assert result.status_code == 404
        assert result.body == b'{"error":"Not Found"}'

    async def test_405_preserves_allow_header(self) -> None:
        exc = HTTPException(status_code=405, headers={"Allow": "POST"})

        result = await _auth_error_handler(_make_request("/login"), exc)

        assert result.status_code == 405
        assert result.headers["allow"] == "POST"

    async def test_204_has_no_body(self) -> None:
        result = await _auth_error_handler(_make_request(), HTTPException(status_code=204))

        assert type(result) is Response
        assert result.status_code == 204
        assert result.body == b""
