"""File-backed user store keeping user records as JSON."""

import asyncio
import contextlib
import json
import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from common.auth.models import UserRecord
from common.auth.user_store import UserStore

logger = structlog.get_logger()

_FILE_PERMISSIONS = 0o600  # owner read/write only


class FileUserStore(UserStore):
    """User store persisted to a single JSON object keyed by lowercased identifier.

    Loads into memory on first access and rewrites the whole file on every
    mutation. The asyncio.Lock only protects writers inside one process, so
    a file must not be shared by several server instances.
    """

    def __init__(self, file_path: str | Path) -> None:
        self._file_path = Path(file_path)
        self._records: dict[str, UserRecord] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    async def _ensure_loaded(self) -> None:
        async with self._lock:
            if self._loaded:
                return
            self._load_from_file()
            self._loaded = True

    def _load_from_file(self) -> None:
        """Load records from the JSON file into memory.

        Starts empty when the file does not exist yet. Raises OSError when an
        existing file cannot be read or parsed, so a later save never
        overwrites data we failed to load.
        """
        self._records = {}

        if not self._file_path.exists():
            return

        try:
            data = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            msg = f"Failed to load users from {self._file_path}"
            raise OSError(msg) from exc

        if not isinstance(data, dict):
            msg = f"Expected JSON object at root in {self._file_path}"
            raise OSError(msg)

        try:
            records = [UserRecord.model_validate(item) for item in data.values()]
        except ValidationError as exc:
            msg = f"Failed to parse user records from {self._file_path}"
            raise OSError(msg) from exc

        self._records = {r.identifier.lower(): r for r in records}
        logger.debug("user store loaded", path=str(self._file_path), count=len(self._records))

    def _save_to_file(self) -> None:
        """Atomically write all records to the JSON file.

        Writes a temporary file in the same directory and renames it into
        place so readers never see a truncated file. The file holds password
        hashes and is created owner-only.
        """
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        data = {key: record.model_dump() for key, record in self._records.items()}
        content = json.dumps(data, indent=2).encode("utf-8")

        fd, tmp_path = tempfile.mkstemp(dir=self._file_path.parent, prefix=".users_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fchmod(f.fileno(), _FILE_PERMISSIONS)
            Path(tmp_path).replace(self._file_path)
        except BaseException:
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise

    async def lookup(self, identifier: str) -> UserRecord | None:
        await self._ensure_loaded()
        return self._records.get(identifier.lower())

    async def create(self, record: UserRecord) -> None:
        await self._ensure_loaded()
        key = record.identifier.lower()
        async with self._lock:
            if key in self._records:
                raise ValueError(f"Identifier '{record.identifier}' already taken")
            self._records[key] = record
            try:
                self._save_to_file()
            except OSError:
                del self._records[key]
                raise
