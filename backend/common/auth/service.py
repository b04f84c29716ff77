"""Session authenticator coordinating credential checks, session issuance and validation."""

from __future__ import annotations

import contextlib
import re
import secrets
import time
from typing import TYPE_CHECKING

import structlog

from common.auth.exceptions import (
    IdentifierTaken,
    InvalidCredentials,
    RegistrationError,
    SessionExpired,
    SessionNotFound,
    StoreUnavailable,
)
from common.auth.models import Session, UserRecord
from common.auth.settings import AuthSettings

if TYPE_CHECKING:
    from collections.abc import Iterator

    from common.auth.password import PasswordHasher
    from common.auth.session_store import SessionStore
    from common.auth.user_store import UserStore

IDENTIFIER_MIN_LENGTH = 3
IDENTIFIER_MAX_LENGTH = 254  # longest valid email address
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_.@+-]+")

SECRET_MIN_LENGTH = 8
SECRET_MAX_LENGTH = 72  # bcrypt truncates at 72 bytes

_TOKEN_ATTEMPTS = 3

logger = structlog.get_logger()


@contextlib.contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Convert backing-store OSErrors into StoreUnavailable."""
    try:
        yield
    except OSError as exc:
        logger.warning("backing store unavailable", operation=operation, error=str(exc))
        raise StoreUnavailable from exc


class SessionAuthenticator:
    """Authenticate credentials, issue opaque session tokens and validate them.

    Holds no account data of its own: users come from the injected
    UserStore, sessions live in the injected SessionStore.
    """

    def __init__(
        self,
        user_store: UserStore,
        session_store: SessionStore,
        *,
        password_hasher: PasswordHasher,
        settings: AuthSettings | None = None,
    ) -> None:
        self._users = user_store
        self._sessions = session_store
        self._hasher = password_hasher
        self._settings = settings if settings is not None else AuthSettings()
        self._ttl_seconds = self._settings.ttl.total_seconds()
        self._dummy_hash: str | None = None

    async def authenticate(self, identifier: str, secret: str) -> Session:
        """Check credentials and issue a new session.

        Unknown identifiers and wrong secrets both raise InvalidCredentials
        after a full hash verification, so response timing does not reveal
        whether the identifier exists.
        """
        try:
            record = await self._check_credentials(identifier, secret)
        except InvalidCredentials as exc:
            logger.info("authentication failed", kind=exc.kind, identifier=identifier)
            raise
        session = self._issue(record.identifier)
        logger.info("session issued", identifier=record.identifier, expires_at=session.expires_at)
        return session

    def validate(self, token: str | None) -> str:
        """Return the identifier owning an active session."""
        return self.get_session(token).identifier

    def get_session(self, token: str | None) -> Session:
        """Return the active session for a token.

        Raises SessionNotFound for unknown or revoked tokens and SessionExpired
        (removing the session) once past expiry. With sliding expiration the
        returned session carries the extended expiry.
        """
        if not token:
            raise SessionNotFound
        with _store_errors("session lookup"):
            session = self._sessions.get(token)
        if session is None:
            raise SessionNotFound

        now = time.time()
        if session.is_expired(now):
            with _store_errors("session delete"):
                removed = self._sessions.delete_if_expired(token, now)
            if removed:
                raise SessionExpired
            # extended or revoked by a concurrent request since the read above
            with _store_errors("session lookup"):
                session = self._sessions.get(token)
            if session is None:
                raise SessionNotFound
            if session.is_expired(now):
                raise SessionExpired

        if self._settings.sliding_expiration:
            with _store_errors("session extend"):
                extended = self._sessions.extend(token, now + self._ttl_seconds)
            if extended is None:  # revoked between get and extend
                raise SessionNotFound
            session = extended
        return session

    def revoke(self, token: str | None) -> None:
        """Destroy a session. Unknown tokens are ignored."""
        if not token:
            return
        with _store_errors("session delete"):
            self._sessions.delete(token)

    def revoke_all(self, identifier: str) -> int:
        """Destroy every session owned by an identifier. Return the count destroyed."""
        with _store_errors("session delete"):
            count = self._sessions.delete_for(identifier)
        if count:
            logger.info("sessions revoked", identifier=identifier, count=count)
        return count

    async def prepare(self) -> None:
        """Hash the dummy secret up front so the first unknown-identifier login is not slower."""
        await self._get_dummy_hash()

    async def register(self, identifier: str, secret: str) -> UserRecord:
        """Create a user record with a hashed secret."""
        _validate_identifier(identifier)
        _validate_secret(secret)

        with _store_errors("user lookup"):
            existing = await self._users.lookup(identifier)
        if existing is not None:
            raise IdentifierTaken(f"Identifier '{identifier}' is already taken")

        record = UserRecord(
            identifier=identifier,
            password_hash=await self._hasher.hash(secret),
            created_at=time.time(),
        )
        with _store_errors("user create"):
            try:
                await self._users.create(record)
            except ValueError as e:
                raise IdentifierTaken(str(e)) from e
        logger.info("user registered", identifier=identifier)
        return record

    # -- private helpers --

    async def _check_credentials(self, identifier: object, secret: object) -> UserRecord:
        if not isinstance(identifier, str) or not isinstance(secret, str) or not identifier or not secret:
            raise InvalidCredentials

        with _store_errors("user lookup"):
            record = await self._users.lookup(identifier)
        if record is None:
            await self._hasher.verify(secret, await self._get_dummy_hash())
            raise InvalidCredentials
        if not await self._hasher.verify(secret, record.password_hash):
            raise InvalidCredentials
        return record

    async def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await self._hasher.hash(secrets.token_urlsafe(16))
        return self._dummy_hash

    def _issue(self, identifier: str) -> Session:
        for _ in range(_TOKEN_ATTEMPTS):
            now = time.time()
            session = Session(
                token=secrets.token_urlsafe(self._settings.token_bytes),
                identifier=identifier,
                issued_at=now,
                expires_at=now + self._ttl_seconds,
            )
            with _store_errors("session create"):
                try:
                    evicted = self._sessions.add(
                        session,
                        max_per_identifier=self._settings.max_sessions_per_identifier,
                    )
                except ValueError:
                    logger.warning("session token collision, regenerating")
                    continue
            if evicted:
                logger.info("evicted oldest sessions", identifier=identifier, count=len(evicted))
            return session
        raise StoreUnavailable("Could not allocate a unique session token")


def _validate_identifier(identifier: str) -> None:
    """Validate identifier: 3-254 chars, letters, digits and _ . @ + -."""
    if len(identifier) < IDENTIFIER_MIN_LENGTH or len(identifier) > IDENTIFIER_MAX_LENGTH:
        raise RegistrationError(
            f"Identifier must be between {IDENTIFIER_MIN_LENGTH} and {IDENTIFIER_MAX_LENGTH} characters",
        )
    if not IDENTIFIER_PATTERN.fullmatch(identifier):
        raise RegistrationError("Identifier must contain only letters, numbers, and _ . @ + -")


def _validate_secret(secret: str) -> None:
    """Validate secret: 8-72 chars, max 72 UTF-8 bytes (bcrypt limit)."""
    if len(secret) < SECRET_MIN_LENGTH or len(secret) > SECRET_MAX_LENGTH:
        raise RegistrationError(f"Password must be between {SECRET_MIN_LENGTH} and {SECRET_MAX_LENGTH} characters")
    try:
        encoded = secret.encode("utf-8")
    except UnicodeEncodeError as e:
        raise RegistrationError("Password must be valid Unicode text") from e
    if len(encoded) > SECRET_MAX_LENGTH:
        raise RegistrationError(f"Password must not exceed {SECRET_MAX_LENGTH} bytes when encoded")
