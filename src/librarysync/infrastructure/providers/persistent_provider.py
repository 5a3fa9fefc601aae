"""Sync provider backed by a ProviderStateStore.

Implements the ISyncProvider port structurally. Which durable medium the
state lives in (JSON file, database row) is decided by the store's backend,
so one adapter serves every backend.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TypeVar

from librarysync.domain.entities import Playlist, Song, StoredData
from librarysync.domain.value_objects import namespace_prefix, strip_namespace
from librarysync.infrastructure.persistence import ProviderStateStore

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", Song, Playlist)


def merge_by_id(
    existing: Sequence[EntityT], incoming: Iterable[EntityT], overwrite: bool
) -> list[EntityT]:
    """Merge incoming entities into existing ones.

    Without overwrite, ids already present are skipped (the stored entity is
    left untouched). With overwrite the incoming entities replace the whole
    list. Either way the result holds each id once.
    """
    merged: list[EntityT] = [] if overwrite else list(existing)
    seen = {e.id for e in merged}
    for entity in incoming:
        if entity.id in seen:
            continue
        seen.add(entity.id)
        merged.append(entity)
    return merged


def remove_by_id(existing: Sequence[EntityT], removed: Iterable[EntityT]) -> list[EntityT]:
    """Drop entities whose id matches exactly; unknown ids are ignored."""
    removed_ids = {e.id for e in removed}
    return [e for e in existing if e.id not in removed_ids]


class PersistentSyncProvider:
    """A provider whose songs and playlists live in its own state store.

    Example:
        store = ProviderStateStore("default", JsonFileBackend(path))
        provider = PersistentSyncProvider("default", "librarysync", store)
        await provider.store_songs_sanitized(False, *songs)
    """

    def __init__(self, name: str, namespace: str, store: ProviderStateStore) -> None:
        self._name = name
        self._namespace = namespace
        self._prefix = namespace_prefix(namespace)
        self._store = store

    @property
    def name(self) -> str:
        return self._name

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def store(self) -> ProviderStateStore:
        return self._store

    def __repr__(self) -> str:
        return f"<PersistentSyncProvider(name={self._name!r}, namespace={self._namespace!r})>"

    # ==================== Sanitization ====================

    # Hey future me - the host hands us ids with OUR namespace glued on
    # ("librarysync:abc"), but the store must only ever hold the bare "abc".
    # Otherwise the next reconciliation inserts "librarysync:librarysync:abc".
    # Ids without the prefix pass through as the same object, no copy.
    def _sanitize(self, entities: Iterable[EntityT]) -> list[EntityT]:
        sanitized: list[EntityT] = []
        for entity in entities:
            stripped = strip_namespace(entity.id, self._prefix)
            sanitized.append(entity if stripped == entity.id else entity.with_id(stripped))
        return sanitized

    # ==================== Reads ====================

    async def list_songs(self) -> list[Song]:
        return (await self._store.read()).songs

    async def list_playlists(self) -> list[Playlist]:
        return (await self._store.read()).playlists

    # ==================== Songs ====================

    async def store_songs_sanitized(self, overwrite: bool, *songs: Song) -> None:
        if not songs and not overwrite:
            return
        incoming = self._sanitize(songs)

        async def produce() -> StoredData:
            data = await self._store.read()
            data.songs = merge_by_id(data.songs, incoming, overwrite)
            return data

        logger.debug(
            "Provider '%s': storing %d songs (overwrite=%s)", self._name, len(incoming), overwrite
        )
        await self._store.enqueue_write(produce)

    async def remove_songs_sanitized(self, *songs: Song) -> None:
        if not songs:
            return
        removed = self._sanitize(songs)

        async def produce() -> StoredData:
            data = await self._store.read()
            data.songs = remove_by_id(data.songs, removed)
            return data

        await self._store.enqueue_write(produce)

    # ==================== Playlists ====================

    async def store_playlists_sanitized(self, overwrite: bool, *playlists: Playlist) -> None:
        if not playlists and not overwrite:
            return
        incoming = self._sanitize(playlists)

        async def produce() -> StoredData:
            data = await self._store.read()
            data.playlists = merge_by_id(data.playlists, incoming, overwrite)
            return data

        logger.debug(
            "Provider '%s': storing %d playlists (overwrite=%s)",
            self._name,
            len(incoming),
            overwrite,
        )
        await self._store.enqueue_write(produce)

    async def remove_playlists_sanitized(self, *playlists: Playlist) -> None:
        if not playlists:
            return
        removed = self._sanitize(playlists)

        async def produce() -> StoredData:
            data = await self._store.read()
            data.playlists = remove_by_id(data.playlists, removed)
            return data

        await self._store.enqueue_write(produce)

    async def wait_idle(self) -> None:
        await self._store.wait_idle()
