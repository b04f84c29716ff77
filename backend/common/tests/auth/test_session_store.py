"""Tests for InMemorySessionStore."""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from common.auth.models import Session
from common.auth.session_store import InMemorySessionStore


def _session(token: str, identifier: str = "alice", ttl: float = 3600, issued_at: float | None = None) -> Session:
    now = time.time() if issued_at is None else issued_at
    return Session(token=token, identifier=identifier, issued_at=now, expires_at=now + ttl)


class TestAdd:
    def test_stores_session(self):
        store = InMemorySessionStore()
        session = _session("t1")

        store.add(session)

        assert store.get("t1") == session
        assert len(store) == 1

    def test_rejects_duplicate_token(self):
        store = InMemorySessionStore()
        store.add(_session("t1"))

        with pytest.raises(ValueError, match="already in use"):
            store.add(_session("t1", identifier="bob"))

        assert store.get("t1").identifier == "alice"

    def test_allows_many_sessions_per_identifier_by_default(self):
        store = InMemorySessionStore()
        for i in range(5):
            assert store.add(_session(f"t{i}")) == []
        assert len(store) == 5

    def test_limit_evicts_oldest_sessions(self):
        store = InMemorySessionStore()
        store.add(_session("t1"), max_per_identifier=2)
        store.add(_session("t2"), max_per_identifier=2)

        evicted = store.add(_session("t3"), max_per_identifier=2)

        assert [s.token for s in evicted] == ["t1"]
        assert store.get("t1") is None
        assert store.get("t2") is not None
        assert store.get("t3") is not None

    def test_limit_is_per_identifier(self):
        store = InMemorySessionStore()
        store.add(_session("a1", identifier="alice"), max_per_identifier=1)

        evicted = store.add(_session("b1", identifier="bob"), max_per_identifier=1)

        assert evicted == []
        assert len(store) == 2


class TestGetAndExtend:
    def test_returns_none_for_unknown_token(self):
        assert InMemorySessionStore().get("nonexistent") is None

    def test_get_returns_expired_sessions(self):
        store = InMemorySessionStore()
        store.add(_session("t1", ttl=-1))
        assert store.get("t1") is not None

    def test_extend_moves_expiry_forward(self):
        store = InMemorySessionStore()
        session = _session("t1", issued_at=1000.0, ttl=100)
        store.add(session)

        updated = store.extend("t1", 1500.0)

        assert updated.expires_at == 1500.0
        assert store.get("t1").expires_at == 1500.0

    def test_extend_never_shortens(self):
        store = InMemorySessionStore()
        store.add(_session("t1", issued_at=1000.0, ttl=100))

        updated = store.extend("t1", 1050.0)

        assert updated.expires_at == 1100.0

    def test_extend_unknown_token_returns_none(self):
        assert InMemorySessionStore().extend("nonexistent", 1.0) is None


class TestDelete:
    def test_removes_existing_session(self):
        store = InMemorySessionStore()
        store.add(_session("t1"))

        store.delete("t1")

        assert store.get("t1") is None
        assert len(store) == 0

    def test_ignores_unknown_token(self):
        InMemorySessionStore().delete("nonexistent")  # should not raise

    def test_delete_for_removes_only_that_identifier(self):
        store = InMemorySessionStore()
        store.add(_session("a1", identifier="alice"))
        store.add(_session("a2", identifier="Alice"))
        store.add(_session("b1", identifier="bob"))

        assert store.delete_for("ALICE") == 2
        assert store.get("b1") is not None
        assert len(store) == 1

    def test_delete_for_unknown_identifier_returns_zero(self):
        assert InMemorySessionStore().delete_for("nobody") == 0


class TestThreadSafety:
    def test_concurrent_adds_and_deletes_from_threads(self):
        store = InMemorySessionStore()

        def churn(worker: int) -> None:
            for i in range(500):
                token = f"w{worker}-{i}"
                store.add(_session(token, identifier=f"user{worker % 3}"), max_per_identifier=50)
                if i % 2:
                    store.delete(token)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(churn, range(8)))

        # 3 identifiers, each capped at 50 live sessions
        assert len(store) <= 150
        for identifier in ("user0", "user1", "user2"):
            assert store.delete_for(identifier) <= 50
        assert len(store) == 0


class TestCleanupExpired:
    def test_removes_expired_sessions(self):
        store = InMemorySessionStore()
        store.add(_session("t1", ttl=0))
        store.add(_session("t2", identifier="bob", ttl=0))
        store.add(_session("t3", identifier="charlie", ttl=3600))

        with patch("common.auth.session_store.time") as mock_time:
            mock_time.time.return_value = time.time() + 1
            removed = store.cleanup_expired()

        assert removed == 2
        assert store.get("t3") is not None
        assert store.delete_for("alice") == 0

    def test_returns_zero_when_nothing_expired(self):
        store = InMemorySessionStore()
        store.add(_session("t1", ttl=3600))

        assert store.cleanup_expired() == 0


class TestCleanupLifecycle:
    async def test_start_and_stop_cleanup(self):
        store = InMemorySessionStore()
        store.start_cleanup()
        assert store._cleanup_task is not None
        assert not store._cleanup_task.done()

        await store.stop_cleanup()
        assert store._cleanup_task is None

    async def test_start_is_idempotent(self):
        store = InMemorySessionStore()
        store.start_cleanup()
        task1 = store._cleanup_task

        store.start_cleanup()

        assert store._cleanup_task is task1
        await store.stop_cleanup()

    async def test_stop_without_start_is_safe(self):
        await InMemorySessionStore().stop_cleanup()  # should not raise

    async def test_cleanup_loop_runs_periodically(self):
        store = InMemorySessionStore()
        store.add(_session("t1", ttl=-1))

        with (
            patch.object(store, "cleanup_expired", wraps=store.cleanup_expired) as mock_cleanup,
            patch("common.auth.session_store.CLEANUP_INTERVAL_SECONDS", 0.01),
        ):
            store.start_cleanup()
            await asyncio.sleep(0.05)
            await store.stop_cleanup()

        assert mock_cleanup.call_count >= 1
        assert len(store) == 0


class TestDeleteIfExpired:
    def test_removes_expired_session(self):
        store = InMemorySessionStore()
        store.add(_session("t1", issued_at=1000.0, ttl=100))

        assert store.delete_if_expired("t1", 1101.0) is True
        assert store.get("t1") is None
        assert store.delete_for("alice") == 0

    def test_keeps_session_extended_past_now(self):
        store = InMemorySessionStore()
        store.add(_session("t1", issued_at=1000.0, ttl=100))
        store.extend("t1", 2000.0)

        assert store.delete_if_expired("t1", 1101.0) is False
        assert store.get("t1").expires_at == 2000.0

    def test_unknown_token_returns_false(self):
        assert InMemorySessionStore().delete_if_expired("nonexistent", 1.0) is False
