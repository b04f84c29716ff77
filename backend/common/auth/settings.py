"""Session authenticator configuration via environment variables."""

from datetime import timedelta
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from common.auth.password import DEFAULT_BCRYPT_COST, MAX_BCRYPT_COST, MIN_BCRYPT_COST

MIN_TOKEN_BYTES = 16  # 128 bits of entropy


class AuthSettings(BaseSettings):
    model_config = {"env_prefix": "AUTH_"}

    # Session lifetime. Env accepts ISO-8601 ("PT24H") or "HH:MM:SS".
    ttl: timedelta = timedelta(hours=24)

    # Random bytes per session token, before base64url encoding
    token_bytes: int = Field(default=32, ge=MIN_TOKEN_BYTES)

    # bcrypt work factor (log2 rounds)
    hash_cost: int = Field(default=DEFAULT_BCRYPT_COST, ge=MIN_BCRYPT_COST, le=MAX_BCRYPT_COST)

    # "simple" is only for tests
    password_hasher: Literal["bcrypt", "simple"] = "bcrypt"

    # Push expiry to now + ttl on every successful validation
    sliding_expiration: bool = False

    # Oldest sessions are evicted beyond this many per identifier; None means unlimited
    max_sessions_per_identifier: int | None = Field(default=None, ge=1)

    # JSON user store path
    users_file: str = "data/users.json"

    @field_validator("ttl")
    @classmethod
    def validate_ttl(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("ttl must be positive")
        return v
