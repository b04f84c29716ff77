"""Typed exceptions for authentication and session failures.

Every failure raised by the authenticator is a subclass of AuthError and
carries an ErrorKind. The HTTP layer reports all authentication failures
uniformly and only the logs record the specific kind.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    INVALID_CREDENTIALS = "InvalidCredentials"
    SESSION_NOT_FOUND = "SessionNotFound"
    SESSION_EXPIRED = "SessionExpired"
    STORE_UNAVAILABLE = "StoreUnavailable"
    REGISTRATION_REJECTED = "RegistrationRejected"
    IDENTIFIER_TAKEN = "IdentifierTaken"


class AuthError(Exception):
    """Base exception for authentication and session failures."""

    kind: ErrorKind


class InvalidCredentials(AuthError):
    """Unknown identifier or wrong secret. Never says which."""

    kind = ErrorKind.INVALID_CREDENTIALS

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class SessionNotFound(AuthError):
    """No active session for the presented token (unknown or revoked)."""

    kind = ErrorKind.SESSION_NOT_FOUND

    def __init__(self, message: str = "Session not found") -> None:
        super().__init__(message)


class SessionExpired(AuthError):
    """The session existed but is past its expiry timestamp."""

    kind = ErrorKind.SESSION_EXPIRED

    def __init__(self, message: str = "Session expired") -> None:
        super().__init__(message)


class StoreUnavailable(AuthError):
    """A backing user or session store could not be reached.

    Not retried here; retry policy belongs to the caller.
    """

    kind = ErrorKind.STORE_UNAVAILABLE

    def __init__(self, message: str = "Backing store unavailable") -> None:
        super().__init__(message)


class RegistrationError(AuthError):
    """Identifier or secret rejected at registration."""

    kind = ErrorKind.REGISTRATION_REJECTED


class IdentifierTaken(RegistrationError):
    kind = ErrorKind.IDENTIFIER_TAKEN
