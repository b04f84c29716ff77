"""Password hashing: protocol, bcrypt (production), and salted SHA-256 (tests).

BcryptHasher is CPU-bound (~250ms per call at the default cost of 12) and runs
off the event loop using anyio.to_thread.run_sync() so concurrent logins do not
stall other requests.

SimpleHasher uses a random salt and SHA-256 with a "simple$" prefix for
instant hashing. It is intended for tests only.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Protocol, runtime_checkable

import bcrypt
from anyio import to_thread

DEFAULT_BCRYPT_COST = 12
MIN_BCRYPT_COST = 4
MAX_BCRYPT_COST = 31


@runtime_checkable
class PasswordHasher(Protocol):
    """Hash and verify passwords."""

    async def hash(self, plain: str) -> str: ...

    async def verify(self, plain: str, hashed: str) -> bool: ...


class BcryptHasher:
    """Production hasher using bcrypt (async, off-thread)."""

    def __init__(self, cost: int = DEFAULT_BCRYPT_COST) -> None:
        if not MIN_BCRYPT_COST <= cost <= MAX_BCRYPT_COST:
            raise ValueError(f"bcrypt cost must be between {MIN_BCRYPT_COST} and {MAX_BCRYPT_COST}, got {cost}")
        self._cost = cost

    async def hash(self, plain: str) -> str:
        encoded = plain.encode("utf-8")
        salt = bcrypt.gensalt(rounds=self._cost)
        return await to_thread.run_sync(lambda: bcrypt.hashpw(encoded, salt).decode("utf-8"))

    async def verify(self, plain: str, hashed: str) -> bool:
        """Return False for malformed hashes and unencodable or over-long secrets rather than raising."""
        try:
            encoded_plain = plain.encode("utf-8")
            encoded_hash = hashed.encode("utf-8")
            return await to_thread.run_sync(lambda: bcrypt.checkpw(encoded_plain, encoded_hash))
        except ValueError:  # includes UnicodeEncodeError for lone surrogates
            return False


_SIMPLE_PREFIX = "simple$"


def _simple_digest(salt: str, plain: str) -> str:
    return hashlib.sha256(f"{salt}${plain}".encode()).hexdigest()


class SimpleHasher:
    """Fast salted SHA-256 hasher for tests. Not suitable for production use."""

    async def hash(self, plain: str) -> str:
        salt = secrets.token_hex(8)
        return f"{_SIMPLE_PREFIX}{salt}${_simple_digest(salt, plain)}"

    async def verify(self, plain: str, hashed: str) -> bool:
        if not hashed.startswith(_SIMPLE_PREFIX):
            return False
        salt, sep, digest = hashed.removeprefix(_SIMPLE_PREFIX).partition("$")
        if not sep:
            return False
        try:
            expected = _simple_digest(salt, plain)
        except UnicodeEncodeError:
            return False
        return hmac.compare_digest(digest, expected)


def get_hasher(name: str = "bcrypt", *, cost: int = DEFAULT_BCRYPT_COST) -> PasswordHasher:
    """Return a PasswordHasher by name ("bcrypt" or "simple").

    ``cost`` is the bcrypt work factor and is ignored by the simple hasher.
    """
    if name == "bcrypt":
        return BcryptHasher(cost)
    if name == "simple":
        return SimpleHasher()
    raise ValueError(f"Unknown password hasher: {name!r}")
