"""Tests for FileUserStore."""

from __future__ import annotations

import asyncio
import json
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from common.auth.file_user_store import FileUserStore
from common.auth.models import UserRecord

if TYPE_CHECKING:
    from pathlib import Path

FAKE_BCRYPT_HASH = "$2b$12$fakehash"


def _record(identifier="alice", pw_hash=FAKE_BCRYPT_HASH) -> UserRecord:
    return UserRecord(identifier=identifier, password_hash=pw_hash, created_at=1700000000.0)


class TestCreate:
    async def test_creates_and_looks_up(self, tmp_path: Path):
        store = FileUserStore(tmp_path / "users.json")
        await store.create(_record())

        result = await store.lookup("alice")
        assert result is not None
        assert result.password_hash == FAKE_BCRYPT_HASH

    async def test_rejects_duplicate_identifier_case_insensitive(self, tmp_path: Path):
        store = FileUserStore(tmp_path / "users.json")
        await store.create(_record())

        with pytest.raises(ValueError, match="already taken"):
            await store.create(_record(identifier="Alice"))

    async def test_persists_to_file(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        store = FileUserStore(file_path)
        await store.create(_record(identifier="Alice"))

        data = json.loads(file_path.read_text())
        assert data["alice"]["identifier"] == "Alice"
        assert data["alice"]["password_hash"] == FAKE_BCRYPT_HASH

    async def test_file_is_owner_only(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        await FileUserStore(file_path).create(_record())

        assert os.stat(file_path).st_mode & 0o777 == 0o600

    async def test_creates_parent_directories(self, tmp_path: Path):
        file_path = tmp_path / "nested" / "dir" / "users.json"
        await FileUserStore(file_path).create(_record())

        assert file_path.exists()

    async def test_no_temp_files_left_behind(self, tmp_path: Path):
        store = FileUserStore(tmp_path / "users.json")
        await store.create(_record("alice"))
        await store.create(_record("bob"))

        assert [p.name for p in tmp_path.iterdir()] == ["users.json"]

    async def test_failed_write_rolls_back_memory(self, tmp_path: Path):
        store = FileUserStore(tmp_path / "users.json")

        with (
            patch.object(store, "_save_to_file", side_effect=OSError("disk full")),
            pytest.raises(OSError, match="disk full"),
        ):
            await store.create(_record())

        assert await store.lookup("alice") is None

    async def test_concurrent_creates_are_serialized(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        store = FileUserStore(file_path)

        await asyncio.gather(*(store.create(_record(identifier=f"user{i}")) for i in range(10)))

        assert len(json.loads(file_path.read_text())) == 10


class TestLoad:
    async def test_missing_file_starts_empty(self, tmp_path: Path):
        store = FileUserStore(tmp_path / "users.json")
        assert await store.lookup("alice") is None

    async def test_reloads_records_written_by_another_instance(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        await FileUserStore(file_path).create(_record())

        result = await FileUserStore(file_path).lookup("ALICE")

        assert result == _record()

    async def test_corrupt_file_raises_oserror(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        file_path.write_text("{not json")

        with pytest.raises(OSError, match="Failed to load users"):
            await FileUserStore(file_path).lookup("alice")

    async def test_non_object_root_raises_oserror(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        file_path.write_text("[]")

        with pytest.raises(OSError, match="Expected JSON object"):
            await FileUserStore(file_path).lookup("alice")

    async def test_invalid_record_raises_oserror(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        file_path.write_text(json.dumps({"alice": {"identifier": "alice"}}))

        with pytest.raises(OSError, match="Failed to parse user records"):
            await FileUserStore(file_path).lookup("alice")

    async def test_failed_load_does_not_overwrite_file(self, tmp_path: Path):
        file_path = tmp_path / "users.json"
        file_path.write_text("{not json")
        store = FileUserStore(file_path)

        with pytest.raises(OSError):
            await store.create(_record())

        assert file_path.read_text() == "{not json"
