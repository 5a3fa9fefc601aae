"""Tests for the database state backend against a temporary SQLite file."""

from collections.abc import AsyncIterator

import pytest

from librarysync.config import Settings
from librarysync.domain.entities import Song, StoredData
from librarysync.infrastructure.persistence import (
    Database,
    ProviderStateStore,
    SqlStateBackend,
)


@pytest.fixture
async def database(settings: Settings) -> AsyncIterator[Database]:
    db = Database(settings)
    await db.create_tables()
    yield db
    await db.close()


class TestSqlStateBackend:
    """Test raw payload storage in the provider_state table."""

    async def test_missing_row_reads_none(self, database: Database) -> None:
        """Test that an unknown store key has no payload."""
        backend = SqlStateBackend(database, "default")

        assert await backend.read_raw() is None

    async def test_write_then_overwrite(self, database: Database) -> None:
        """Test that a second write replaces the row payload."""
        backend = SqlStateBackend(database, "default")

        await backend.write_raw('{"songs": []}')
        await backend.write_raw('{"songs": [{"_id": "a"}]}')

        assert await backend.read_raw() == '{"songs": [{"_id": "a"}]}'

    async def test_store_keys_are_isolated(self, database: Database) -> None:
        """Test that each store key owns its own row."""
        first = SqlStateBackend(database, "first")
        second = SqlStateBackend(database, "second")

        await first.write_raw("1")

        assert await first.read_raw() == "1"
        assert await second.read_raw() is None

    async def test_describe(self, database: Database) -> None:
        """Test the log location of a row."""
        assert SqlStateBackend(database, "default").describe() == "provider_state[default]"


class TestProviderStateStoreOnDatabase:
    """Test the store on top of the database backend."""

    async def test_round_trip(self, database: Database) -> None:
        """Test that written state is read back through the store."""
        store = ProviderStateStore("default", SqlStateBackend(database, "default"))

        async def produce() -> StoredData:
            return StoredData(songs=[Song(id="a", title="A")])

        await store.enqueue_write(produce)
        data = await store.read()

        assert [(s.id, s.title) for s in data.songs] == [("a", "A")]
