"""Session authentication: credential checks, opaque session tokens, and their stores."""

from common.auth.exceptions import (
    AuthError,
    ErrorKind,
    IdentifierTaken,
    InvalidCredentials,
    RegistrationError,
    SessionExpired,
    SessionNotFound,
    StoreUnavailable,
)
from common.auth.file_user_store import FileUserStore
from common.auth.models import Session, UserRecord
from common.auth.password import BcryptHasher, PasswordHasher, SimpleHasher, get_hasher
from common.auth.service import SessionAuthenticator
from common.auth.session_store import InMemorySessionStore, SessionStore
from common.auth.settings import AuthSettings
from common.auth.user_store import InMemoryUserStore, UserStore

__all__ = [
    "AuthError",
    "AuthSettings",
    "BcryptHasher",
    "ErrorKind",
    "FileUserStore",
    "IdentifierTaken",
    "InMemorySessionStore",
    "InMemoryUserStore",
    "InvalidCredentials",
    "PasswordHasher",
    "RegistrationError",
    "Session",
    "SessionAuthenticator",
    "SessionExpired",
    "SessionNotFound",
    "SessionStore",
    "SimpleHasher",
    "StoreUnavailable",
    "UserRecord",
    "UserStore",
    "get_hasher",
]
