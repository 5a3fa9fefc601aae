"""Tests for SyncExtension startup and shutdown."""

import json
from pathlib import Path

import pytest
from conftest import FakeLibraryClient

from librarysync.config import DatabaseSettings, Settings, StorageSettings
from librarysync.domain.entities import Song, SongType
from librarysync.domain.exceptions import ConfigurationError
from librarysync.infrastructure.lifecycle import SyncExtension, sync_extension


@pytest.fixture
def library() -> FakeLibraryClient:
    return FakeLibraryClient(songs=[Song(id="youtube:a", type=SongType.YOUTUBE)])


class TestFileBackend:
    """Test startup with JSON file stores."""

    async def test_start_wires_and_reconciles(
        self, library: FakeLibraryClient, settings: Settings
    ) -> None:
        """Test that start registers providers, subscribes and reconciles."""
        extension = SyncExtension(library, settings)

        report = await extension.start()
        await extension.stop()

        assert not report.has_errors
        assert [p.name for p in extension.registry.get_all_providers()] == ["default"]
        assert len(library.subscriptions) == 6
        persisted = json.loads(settings.store_path("default").read_text(encoding="utf-8"))
        assert [s["_id"] for s in persisted["songs"]] == ["youtube:a"]
        assert not extension.is_started

    async def test_start_twice_raises(
        self, library: FakeLibraryClient, settings: Settings
    ) -> None:
        """Test that an extension cannot be started twice."""
        extension = SyncExtension(library, settings)
        await extension.start()

        with pytest.raises(RuntimeError):
            await extension.start()
        await extension.stop()

    async def test_unusable_state_dir_aborts(
        self, library: FakeLibraryClient, tmp_path: Path
    ) -> None:
        """Test that a state directory below a regular file is a ConfigurationError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        settings = Settings(storage=StorageSettings(state_dir=blocker / "sync"))

        with pytest.raises(ConfigurationError):
            await SyncExtension(library, settings).start()

        assert library.subscriptions == {}

    async def test_context_manager(self, library: FakeLibraryClient, settings: Settings) -> None:
        """Test that the context manager starts and stops the extension."""
        async with sync_extension(library, settings) as extension:
            assert extension.is_started
            assert len(extension.registry) == 1

        assert not extension.is_started


class TestDatabaseBackend:
    """Test startup with the database backend."""

    async def test_one_provider_per_store(
        self, library: FakeLibraryClient, tmp_path: Path
    ) -> None:
        """Test that each configured store becomes a provider with its own row."""
        settings = Settings(
            storage=StorageSettings(backend="database", stores=["main", "backup"]),
            database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'db' / 'sync.db'}"),
        )
        extension = SyncExtension(library, settings)

        await extension.start()
        main = extension.registry.require("main")
        backup = extension.registry.require("backup")
        main_songs = await main.list_songs()
        backup_songs = await backup.list_songs()
        await extension.stop()

        assert [s.id for s in main_songs] == ["youtube:a"]
        assert [s.id for s in backup_songs] == ["youtube:a"]
        assert (tmp_path / "db" / "sync.db").exists()

    async def test_unusable_database_dir_aborts(
        self, library: FakeLibraryClient, tmp_path: Path
    ) -> None:
        """Test that an uncreatable database directory is a ConfigurationError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        settings = Settings(
            storage=StorageSettings(backend="database"),
            database=DatabaseSettings(url=f"sqlite+aiosqlite:///{blocker / 'sync.db'}"),
        )

        with pytest.raises(ConfigurationError):
            await SyncExtension(library, settings).start()
