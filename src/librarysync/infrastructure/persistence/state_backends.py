"""Backends holding the serialized record of a provider store."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from contextlib import suppress
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from librarysync.domain.exceptions import PersistError
from librarysync.domain.ports import IStateBackend
from librarysync.infrastructure.persistence.database import Database
from librarysync.infrastructure.persistence.models import ProviderStateModel, utc_now

logger = logging.getLogger(__name__)


class JsonFileBackend(IStateBackend):
    """One JSON file per store.

    Writes go to a temp file in the same directory which then replaces the
    target, so a failed or interrupted write leaves the previous file intact.
    File I/O runs in a worker thread to keep the event loop free.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def describe(self) -> str:
        return str(self._path)

    async def read_raw(self) -> str | None:
        return await asyncio.to_thread(self._read)

    def _read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    async def write_raw(self, payload: str) -> None:
        try:
            await asyncio.to_thread(self._write_atomic, payload)
        except (OSError, UnicodeError) as e:
            raise PersistError(
                f"Failed to write {self._path}: {e}", store=self._path.stem
            ) from e

    # Hey future me - the temp file MUST live in the same directory as the target,
    # os.replace is only atomic within one filesystem. A crash mid-write leaves the
    # old file intact plus at most one stray .tmp file.
    def _write_atomic(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            with suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise


class SqlStateBackend(IStateBackend):
    """One row of the ``provider_state`` table per store.

    Each write upserts the row inside a single transaction; a failed commit
    rolls back and the previous payload stays.
    """

    def __init__(self, database: Database, store_key: str) -> None:
        self._database = database
        self._store_key = store_key

    def describe(self) -> str:
        return f"provider_state[{self._store_key}]"

    async def read_raw(self) -> str | None:
        async with self._database.session_scope() as session:
            model = await session.get(ProviderStateModel, self._store_key)
            return model.payload if model is not None else None

    async def write_raw(self, payload: str) -> None:
        try:
            async with self._database.session_scope() as session:
                model = await session.get(ProviderStateModel, self._store_key)
                if model is None:
                    session.add(
                        ProviderStateModel(store_key=self._store_key, payload=payload)
                    )
                else:
                    model.payload = payload
                    model.updated_at = utc_now()
        except SQLAlchemyError as e:
            raise PersistError(
                f"Failed to write {self.describe()}: {e}", store=self._store_key
            ) from e
