"""Tests for the startup reconciliation between library and providers."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeLibraryClient

from librarysync.application.services import ProviderRouter, ReconciliationService
from librarysync.domain.entities import Playlist, Song, SongType
from librarysync.infrastructure.providers import PersistentSyncProvider, SyncProviderRegistry

MakeProvider = Callable[..., PersistentSyncProvider]


def _ids(entities: list) -> list[str]:
    return [e.id for e in entities]


def _service(library: FakeLibraryClient, registry: SyncProviderRegistry) -> ReconciliationService:
    return ReconciliationService(library, registry, ProviderRouter(library), "librarysync")


@pytest.fixture
def populated_library() -> FakeLibraryClient:
    """Library with one remote and one local song, one owned and one local playlist."""
    return FakeLibraryClient(
        songs=[
            Song(id="youtube:a", title="A", type=SongType.YOUTUBE),
            Song(id="file-1", title="On disk", type=SongType.LOCAL),
        ],
        playlists=[Playlist(id="spotify-playlist:P", name="Mix"), Playlist(id="local-pl")],
        insert_prefix="librarysync:",
    )


@pytest.fixture
async def seeded_provider(make_provider: MakeProvider) -> PersistentSyncProvider:
    """Provider already holding song x and playlist q."""
    provider = make_provider("default", namespace="librarysync")
    await provider.store_songs_sanitized(False, Song(id="x", title="X", type=SongType.URL))
    await provider.store_playlists_sanitized(False, Playlist(id="q", name="Q"))
    return provider


@pytest.fixture
def registry(seeded_provider: PersistentSyncProvider) -> SyncProviderRegistry:
    registry = SyncProviderRegistry()
    registry.register(seeded_provider)
    return registry


class TestReconciliation:
    """Test the four passes against a real file-backed provider."""

    async def test_both_sides_receive_missing_entities(
        self,
        populated_library: FakeLibraryClient,
        registry: SyncProviderRegistry,
        seeded_provider: PersistentSyncProvider,
    ) -> None:
        """Test one full run."""
        report = await _service(populated_library, registry).run()

        assert _ids(await seeded_provider.list_songs()) == ["x", "youtube:a"]
        assert _ids(await seeded_provider.list_playlists()) == ["q", "spotify-playlist:P"]
        assert _ids(populated_library.added_songs) == ["librarysync:x"]
        assert _ids(populated_library.added_playlists) == ["librarysync:q"]

        assert not report.has_errors
        assert report.songs_to_providers.pushed == 1
        assert report.songs_to_library.pushed == 1
        assert report.songs_to_library.skipped == 1
        assert report.playlists_to_providers.pushed == 1
        assert report.playlists_to_providers.skipped == 1
        assert report.playlists_to_library.pushed == 1
        assert report.correlation_id

    async def test_local_songs_never_reach_providers(
        self,
        populated_library: FakeLibraryClient,
        registry: SyncProviderRegistry,
        seeded_provider: PersistentSyncProvider,
    ) -> None:
        """Test that LOCAL songs stay in the library."""
        await _service(populated_library, registry).run()

        assert "file-1" not in _ids(await seeded_provider.list_songs())

    async def test_second_run_adds_nothing(
        self,
        populated_library: FakeLibraryClient,
        registry: SyncProviderRegistry,
        seeded_provider: PersistentSyncProvider,
    ) -> None:
        """Test that reconciling twice produces no duplicates on either side."""
        service = _service(populated_library, registry)
        await service.run()
        songs_after_first = _ids(await seeded_provider.list_songs())
        playlists_after_first = _ids(await seeded_provider.list_playlists())
        library_songs_after_first = _ids(populated_library.songs)

        report = await service.run()

        assert _ids(await seeded_provider.list_songs()) == songs_after_first
        assert _ids(await seeded_provider.list_playlists()) == playlists_after_first
        assert _ids(populated_library.songs) == library_songs_after_first
        assert len(populated_library.added_songs) == 1
        assert len(populated_library.added_playlists) == 1
        assert report.songs_to_library.pushed == 0
        assert report.playlists_to_library.pushed == 0

    async def test_duplicate_across_providers_is_added_once(
        self, make_provider: MakeProvider
    ) -> None:
        """Test that a song held by two providers reaches the library once."""
        library = FakeLibraryClient()
        registry = SyncProviderRegistry()
        for name in ("first", "second"):
            provider = make_provider(name)
            await provider.store_songs_sanitized(False, Song(id="shared"))
            registry.register(provider)

        report = await _service(library, registry).run()

        assert _ids(library.added_songs) == ["shared"]
        assert report.songs_to_library.skipped == 1


class TestMembership:
    """Test how library ids are compared with provider ids."""

    async def test_bare_and_namespaced_ids_match(self) -> None:
        """Test that both id forms count as present."""
        library = FakeLibraryClient(songs=[Song(id="a"), Song(id="librarysync:b")])
        service = _service(library, SyncProviderRegistry())

        assert await service.is_song_in_library("a")
        assert await service.is_song_in_library("b")

    async def test_suffix_match_alone_is_not_membership(self) -> None:
        """Test that other:x does not count as x."""
        library = FakeLibraryClient(
            songs=[Song(id="other:x")], playlists=[Playlist(id="other:p")]
        )
        service = _service(library, SyncProviderRegistry())

        assert not await service.is_song_in_library("x")
        assert not await service.is_playlist_in_library("p")


class TestFailurePolicy:
    """Test that failures are collected and the run continues."""

    async def test_failed_insert_does_not_stop_pass(
        self, make_provider: MakeProvider
    ) -> None:
        """Test that one failing add_songs call is recorded and the next song still syncs."""
        provider = make_provider()
        await provider.store_songs_sanitized(False, Song(id="x"), Song(id="y"))
        await provider.store_playlists_sanitized(False, Playlist(id="q"))
        registry = SyncProviderRegistry()
        registry.register(provider)
        library = FakeLibraryClient()
        library.add_songs = AsyncMock(side_effect=[RuntimeError("boom"), None])

        report = await _service(library, registry).run()

        assert report.has_errors
        assert len(report.songs_to_library.errors) == 1
        assert "x" in report.songs_to_library.errors[0]
        assert report.songs_to_library.pushed == 1
        library.add_songs.assert_awaited_with(Song(id="y"))
        assert report.playlists_to_library.ok
        assert _ids(library.added_playlists) == ["q"]

    async def test_library_query_failure_is_recorded(
        self,
        populated_library: FakeLibraryClient,
        registry: SyncProviderRegistry,
    ) -> None:
        """Test that a failing song query leaves the playlist passes running."""
        populated_library.query_songs = AsyncMock(side_effect=RuntimeError("host down"))

        report = await _service(populated_library, registry).run()

        assert report.songs_to_providers.errors == ["library: host down"]
        assert report.songs_to_library.errors
        assert report.playlists_to_providers.ok
        assert report.playlists_to_library.ok
        assert _ids(populated_library.added_playlists) == ["librarysync:q"]

    async def test_broken_provider_is_reported(
        self,
        populated_library: FakeLibraryClient,
        registry: SyncProviderRegistry,
        seeded_provider: PersistentSyncProvider,
    ) -> None:
        """Test that a provider failing every call does not block the healthy one."""
        broken = MagicMock()
        broken.name = "broken"
        broken.namespace = "broken"
        broken.list_songs = AsyncMock(side_effect=RuntimeError("gone"))
        broken.list_playlists = AsyncMock(side_effect=RuntimeError("gone"))
        broken.store_songs_sanitized = AsyncMock(side_effect=RuntimeError("gone"))
        broken.store_playlists_sanitized = AsyncMock(side_effect=RuntimeError("gone"))
        registry.register(broken)

        report = await _service(populated_library, registry).run()

        assert all(p.errors == ["provider broken: gone"] for p in report.passes)
        assert _ids(await seeded_provider.list_songs()) == ["x", "youtube:a"]
        assert _ids(populated_library.added_songs) == ["librarysync:x"]

    async def test_summary(self, library: FakeLibraryClient) -> None:
        """Test the per-pass counters of an empty run."""
        report = await _service(library, SyncProviderRegistry()).run()

        assert report.summary() == {
            name: {"examined": 0, "pushed": 0, "skipped": 0, "errors": 0}
            for name in (
                "songs_to_providers",
                "songs_to_library",
                "playlists_to_providers",
                "playlists_to_library",
            )
        }
