"""Shared fixtures: an in-memory host library and file-backed providers."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from librarysync.config import DatabaseSettings, Settings, StorageSettings
from librarysync.domain.entities import Playlist, Song
from librarysync.domain.ports import EventHandler
from librarysync.infrastructure.persistence import JsonFileBackend, ProviderStateStore
from librarysync.infrastructure.providers import PersistentSyncProvider


def _matches(wire: dict[str, Any], criteria: dict[str, Any]) -> bool:
    for key, expected in criteria.items():
        actual = wire.get(key)
        if isinstance(expected, str) and expected.startswith("%"):
            if not isinstance(actual, str) or not actual.endswith(expected[1:]):
                return False
        elif actual != expected:
            return False
    return True


class FakeLibraryClient:
    """In-memory stand-in for the host library API.

    Filters follow the host query shape; a leading ``%`` matches by suffix.
    ``insert_prefix`` mimics the host namespacing entities an extension adds.
    """

    def __init__(
        self,
        songs: list[Song] | None = None,
        playlists: list[Playlist] | None = None,
        extensions: list[str] | None = None,
        insert_prefix: str = "",
    ) -> None:
        self.songs: list[Song] = list(songs or [])
        self.playlists: list[Playlist] = list(playlists or [])
        self.extensions: list[str] = list(extensions or [])
        self.insert_prefix = insert_prefix
        self.subscriptions: dict[str, EventHandler] = {}
        self.added_songs: list[Song] = []
        self.added_playlists: list[Playlist] = []

    def _namespaced(self, entity_id: str) -> str:
        if self.insert_prefix and not entity_id.startswith(self.insert_prefix):
            return f"{self.insert_prefix}{entity_id}"
        return entity_id

    async def query_songs(self, filter: dict[str, Any], invert: bool = False) -> list[Song]:
        criteria = filter.get("song", {})
        return [s for s in self.songs if _matches(s.to_dict(), criteria) != invert]

    async def query_playlists(self, filter: dict[str, Any]) -> list[Playlist]:
        criteria = filter.get("playlist", {})
        return [p for p in self.playlists if _matches(p.to_dict(), criteria)]

    async def add_songs(self, *songs: Song) -> None:
        for song in songs:
            stored = song.with_id(self._namespaced(song.id))
            self.songs.append(stored)
            self.added_songs.append(stored)

    async def add_playlist(self, playlist: Playlist) -> None:
        stored = playlist.with_id(self._namespaced(playlist.id))
        self.playlists.append(stored)
        self.added_playlists.append(stored)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self.subscriptions[event_name] = handler

    async def list_installed_extensions(self) -> list[str]:
        return list(self.extensions)

    async def emit(self, event_name: str, *args: Any) -> Any:
        return await self.subscriptions[event_name](*args)


@pytest.fixture
def library() -> FakeLibraryClient:
    """Empty host library."""
    return FakeLibraryClient()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every storage location into tmp_path."""
    return Settings(
        storage=StorageSettings(state_dir=tmp_path / "sync"),
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'librarysync.db'}"),
    )


@pytest.fixture
def make_provider(tmp_path: Path) -> Callable[..., PersistentSyncProvider]:
    """Factory for JSON-file providers living in tmp_path."""

    def _make(name: str = "default", namespace: str = "librarysync") -> PersistentSyncProvider:
        backend = JsonFileBackend(tmp_path / "providers" / f"{name}.json")
        return PersistentSyncProvider(name, namespace, ProviderStateStore(name, backend))

    return _make
