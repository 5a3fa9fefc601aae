"""Durable provider state behind a serialized write queue."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from librarysync.domain.entities import Playlist, Song, StoredData
from librarysync.domain.exceptions import ValidationError
from librarysync.domain.ports import IStateBackend
from librarysync.infrastructure.persistence.write_queue import SerializedWriteQueue

logger = logging.getLogger(__name__)

StateProducer = Callable[[], Awaitable[StoredData]]


def _decode_list(
    raw: Any,
    field_name: str,
    factory: Callable[[Any], Any],
    store: str,
) -> list[Any]:
    if not isinstance(raw, list):
        if raw is None:
            logger.debug("Store '%s': field '%s' missing; using empty list", store, field_name)
        else:
            logger.warning(
                "Store '%s': field '%s' is %s, not an array; using empty list",
                store,
                field_name,
                type(raw).__name__,
            )
        return []

    items: list[Any] = []
    seen: set[str] = set()
    for index, entry in enumerate(raw):
        try:
            item = factory(entry)
        except ValidationError as e:
            logger.warning(
                "Store '%s': skipping %s[%d]: %s", store, field_name, index, e.message
            )
            continue
        if item.id in seen:
            logger.debug("Store '%s': duplicate id %s in %s", store, item.id, field_name)
            continue
        seen.add(item.id)
        items.append(item)
    return items


def decode_stored_data(payload: str, store: str = "") -> StoredData:
    """Decode a persisted record, degrading field by field.

    A valid ``songs`` array next to an invalid ``playlists`` field still
    yields the songs. Entries without a usable id are skipped.

    Raises:
        ValidationError: If payload is not JSON or not a JSON object
    """
    try:
        parsed = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Stored record is not valid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise ValidationError(
            f"Stored record is {type(parsed).__name__}, expected an object"
        )

    return StoredData(
        songs=_decode_list(parsed.get("songs"), "songs", Song.from_dict, store),
        playlists=_decode_list(
            parsed.get("playlists"), "playlists", Playlist.from_dict, store
        ),
    )


def encode_stored_data(data: StoredData) -> str:
    """Serialize a full record; the backend replaces the previous one with it.

    Output is pure ASCII: lone surrogates from host strings are written as
    ``\\udXXX`` escapes and decode back to the same string.
    """
    return json.dumps(data.to_dict())


class ProviderStateStore:
    """Songs and playlists of one provider, persisted through a write queue.

    Reads go straight to the backend and see the last flushed state, never
    writes that are still queued. Callers must tolerate that skew.

    Every write is a producer coroutine that reads the current state, changes
    it in memory and returns the full record. Producers only run once all
    earlier writes of this store have been flushed, so each one starts from
    the state its predecessor left.
    """

    def __init__(self, name: str, backend: IStateBackend) -> None:
        self._name = name
        self._backend = backend
        self._queue = SerializedWriteQueue(name)

    @property
    def name(self) -> str:
        return self._name

    @property
    def backend(self) -> IStateBackend:
        return self._backend

    async def read(self) -> StoredData:
        """Current durable state. Never raises; corrupt input reads as empty."""
        try:
            payload = await self._backend.read_raw()
        except Exception as e:
            logger.error(
                "Failed to read store '%s' from %s, discarding: %s",
                self._name,
                self._backend.describe(),
                e,
            )
            return StoredData()

        if payload is None:
            return StoredData()

        try:
            return decode_stored_data(payload, store=self._name)
        except ValidationError as e:
            logger.error(
                "Failed to parse store '%s' from %s, discarding: %s",
                self._name,
                self._backend.describe(),
                e.message,
            )
            return StoredData()

    async def enqueue_write(self, producer: StateProducer) -> None:
        """Schedule producer and persist its result.

        Returns once the queue is drained if this call started the flush,
        immediately if another flush is already running.
        """

        async def job() -> None:
            data = await producer()
            await self._backend.write_raw(encode_stored_data(data))
            logger.debug(
                "Store '%s' flushed (%d songs, %d playlists)",
                self._name,
                len(data.songs),
                len(data.playlists),
            )

        await self._queue.submit(job)

    async def wait_idle(self) -> None:
        """Wait until every queued write has been flushed or dropped."""
        await self._queue.wait_idle()

    def get_stats(self) -> dict[str, Any]:
        stats = self._queue.get_stats()
        stats["backend"] = self._backend.describe()
        return stats
