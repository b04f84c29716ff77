"""Session store interface and a thread-safe in-memory store with expiry cleanup."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from common.auth.models import Session

CLEANUP_INTERVAL_SECONDS = 300  # 5 minutes

logger = structlog.get_logger()


class SessionStore(ABC):
    """Token-keyed session storage shared by all concurrent requests.

    Implementations serialize reads and writes per token and signal an
    unreachable backend by raising OSError. Expired sessions may still be
    returned by ``get``; deciding what an expired session means is up to
    the caller.
    """

    @abstractmethod
    def add(self, session: Session, *, max_per_identifier: int | None = None) -> list[Session]:
        """Store a new session. Raises ValueError if the token is already in use.

        When ``max_per_identifier`` is set, the oldest sessions of the same
        identifier beyond that limit are removed and returned.
        """

    @abstractmethod
    def get(self, token: str) -> Session | None: ...

    @abstractmethod
    def extend(self, token: str, expires_at: float) -> Session | None:
        """Move a session's expiry forward. Returns the updated session, or None if absent."""

    @abstractmethod
    def delete(self, token: str) -> None:
        """Remove a session. Unknown tokens are ignored."""

    @abstractmethod
    def delete_if_expired(self, token: str, now: float) -> bool:
        """Remove a session only if it is still expired at ``now``. Returns True if removed."""

    @abstractmethod
    def delete_for(self, identifier: str) -> int:
        """Remove every session owned by an identifier. Returns the count removed."""

    @abstractmethod
    def __len__(self) -> int: ...


class InMemorySessionStore(SessionStore):
    """In-memory session store with a per-identifier index.

    Sessions are ephemeral: a server restart means everyone logs in again.
    A single threading.Lock guards both maps, so the store is safe from the
    event loop and from worker threads alike.
    Call start_cleanup() on app startup and stop_cleanup() on shutdown.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._by_identifier: dict[str, dict[str, None]] = {}  # insertion-ordered token sets
        self._lock = threading.Lock()
        self._cleanup_task: asyncio.Task[None] | None = None

    def add(self, session: Session, *, max_per_identifier: int | None = None) -> list[Session]:
        key = session.identifier.lower()
        with self._lock:
            if session.token in self._sessions:
                raise ValueError("Session token already in use")
            self._sessions[session.token] = session
            tokens = self._by_identifier.setdefault(key, {})
            tokens[session.token] = None

            if max_per_identifier is None or len(tokens) <= max_per_identifier:
                return []

            oldest_first = [self._sessions[t] for t in tokens if t != session.token]
            evicted = oldest_first[: len(oldest_first) - (max_per_identifier - 1)]
            for old in evicted:
                self._remove_locked(old.token)
            return evicted

    def get(self, token: str) -> Session | None:
        with self._lock:
            return self._sessions.get(token)

    def extend(self, token: str, expires_at: float) -> Session | None:
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            updated = dataclasses.replace(session, expires_at=max(session.expires_at, expires_at))
            self._sessions[token] = updated
            return updated

    def delete(self, token: str) -> None:
        with self._lock:
            self._remove_locked(token)

    def delete_if_expired(self, token: str, now: float) -> bool:
        with self._lock:
            session = self._sessions.get(token)
            if session is None or not session.is_expired(now):
                return False
            self._remove_locked(token)
            return True

    def delete_for(self, identifier: str) -> int:
        with self._lock:
            tokens = self._by_identifier.pop(identifier.lower(), {})
            for token in tokens:
                self._sessions.pop(token, None)
            return len(tokens)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _remove_locked(self, token: str) -> None:
        session = self._sessions.pop(token, None)
        if session is None:
            return
        key = session.identifier.lower()
        tokens = self._by_identifier.get(key)
        if tokens is not None:
            tokens.pop(token, None)
            if not tokens:
                del self._by_identifier[key]

    def cleanup_expired(self) -> int:
        """Remove all expired sessions. Return count of removed sessions."""
        now = time.time()
        with self._lock:
            expired = [token for token, s in self._sessions.items() if s.is_expired(now)]
            for token in expired:
                self._remove_locked(token)
        if expired:
            logger.info("cleaned up expired sessions", count=len(expired))
        return len(expired)

    def start_cleanup(self) -> None:
        """Start the periodic cleanup background task."""
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup(self) -> None:
        """Stop the periodic cleanup background task."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._cleanup_task
            self._cleanup_task = None

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            self.cleanup_expired()
