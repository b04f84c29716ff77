"""User record and session models for authentication."""

from dataclasses import dataclass
from datetime import UTC, datetime

from pydantic import BaseModel, field_validator


class UserRecord(BaseModel, frozen=True):
    """User account stored in a user store."""

    identifier: str  # username or email, original casing
    password_hash: str  # bcrypt hash, "simple$..." in tests
    created_at: float  # time.time()

    @field_validator("identifier", "password_hash")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value


@dataclass
class Session:
    """Server-side session binding an opaque token to an identifier."""

    token: str
    identifier: str
    issued_at: float  # time.time()
    expires_at: float  # issued_at + TTL, moved forward only by sliding expiration

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


def to_iso8601(timestamp: float) -> str:
    """Render an epoch timestamp as an ISO-8601 UTC string."""
    return datetime.fromtimestamp(timestamp, tz=UTC).isoformat()
