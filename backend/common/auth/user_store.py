"""User store interface and an in-memory implementation."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from common.auth.models import UserRecord


class UserStore(ABC):
    """Abstract interface for user persistence, keyed by identifier.

    Lookups are case-insensitive. Implementations can use files, SQLite,
    PostgreSQL, etc. and signal an unreachable backend by raising OSError.
    """

    @abstractmethod
    async def lookup(self, identifier: str) -> UserRecord | None: ...

    @abstractmethod
    async def create(self, record: UserRecord) -> None:
        """Add a record. Raises ValueError if the identifier is already taken."""


class InMemoryUserStore(UserStore):
    """Process-local user store. Contents are lost on restart."""

    def __init__(self, records: Iterable[UserRecord] = ()) -> None:
        self._records: dict[str, UserRecord] = {r.identifier.lower(): r for r in records}
        self._lock = asyncio.Lock()

    async def lookup(self, identifier: str) -> UserRecord | None:
        return self._records.get(identifier.lower())

    async def create(self, record: UserRecord) -> None:
        key = record.identifier.lower()
        async with self._lock:
            if key in self._records:
                raise ValueError(f"Identifier '{record.identifier}' already taken")
            self._records[key] = record

    def __len__(self) -> int:
        return len(self._records)
