"""Ports (interfaces) of the sync engine.

Following Hexagonal Architecture, these are the seams between the engine and
the outside world:

    ILibraryClient   host library API, injected into router, reconciliation
                     and event handlers (never reached through a global)
    ISyncProvider    one external source/sink of songs and playlists
    IStateBackend    raw read/write primitives of a durable store

Implementations live in the infrastructure layer; tests use in-memory fakes.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from librarysync.domain.entities import Playlist, Song

EventHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ForwardRequest:
    """Tells the host to re-dispatch a request to another handler.

    Returned by the requestedPlaylistSongs / playbackDetailsRequested
    handlers when the requested id belongs to a provider.

    Attributes:
        forward_to: Tag of the provider or extension that owns the id
        transformed_data: Positional arguments for the re-dispatched call,
            with the namespace prefix stripped from the id
    """

    forward_to: str
    transformed_data: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Host wire shape: ``{forwardTo, transformedData}``."""
        return {
            "forwardTo": self.forward_to,
            "transformedData": [
                item.to_dict() if isinstance(item, Song) else item
                for item in self.transformed_data
            ],
        }


@runtime_checkable
class ILibraryClient(Protocol):
    """The host application's library API.

    Every call is a suspension point. Filters use the host's query shape,
    e.g. ``{"song": {"type": "LOCAL"}}`` or ``{"playlist": {"playlist_id": "%abc"}}``
    where a leading ``%`` matches by suffix.
    """

    async def query_songs(
        self, filter: dict[str, Any], invert: bool = False
    ) -> list[Song]:
        """Songs matching filter (or not matching it when invert is set)."""
        ...

    async def query_playlists(self, filter: dict[str, Any]) -> list[Playlist]:
        """Playlists matching filter."""
        ...

    async def add_songs(self, *songs: Song) -> None:
        """Insert songs into the library."""
        ...

    async def add_playlist(self, playlist: Playlist) -> None:
        """Insert one playlist into the library."""
        ...

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register handler for a library event."""
        ...

    async def list_installed_extensions(self) -> list[str]:
        """Package names of installed extensions, each a routable namespace."""
        ...


@runtime_checkable
class ISyncProvider(Protocol):
    """One external source/sink of songs and playlists.

    ``namespace`` is the prefix tag this provider strips from incoming ids
    before touching its own storage. All store/remove operations are
    variadic and accept ids with or without the prefix.
    """

    @property
    def name(self) -> str:
        """Unique name used by the registry and in logs."""
        ...

    @property
    def namespace(self) -> str:
        """Tag whose ``"<tag>:"`` prefix is stripped by sanitization."""
        ...

    async def list_songs(self) -> list[Song]:
        ...

    async def list_playlists(self) -> list[Playlist]:
        ...

    async def store_songs_sanitized(self, overwrite: bool, *songs: Song) -> None:
        """Merge (skip existing ids) or, with overwrite, replace all songs."""
        ...

    async def remove_songs_sanitized(self, *songs: Song) -> None:
        """Delete songs by exact id; absent ids are ignored."""
        ...

    async def store_playlists_sanitized(
        self, overwrite: bool, *playlists: Playlist
    ) -> None:
        """Merge (skip existing ids) or, with overwrite, replace all playlists."""
        ...

    async def remove_playlists_sanitized(self, *playlists: Playlist) -> None:
        """Delete playlists by exact id; absent ids are ignored."""
        ...

    async def wait_idle(self) -> None:
        """Return once every write requested so far has been flushed."""
        ...


class IStateBackend(ABC):
    """Raw durable storage for one provider store.

    Backends move serialized text only; decoding and validation happen in
    the store so every backend degrades the same way on corrupt data.
    """

    @abstractmethod
    async def read_raw(self) -> str | None:
        """Return the persisted payload, or None if nothing was persisted yet."""
        pass

    @abstractmethod
    async def write_raw(self, payload: str) -> None:
        """Replace the persisted payload atomically.

        Raises:
            PersistError: If the payload could not be written. The previous
                payload must still be readable afterwards.
        """
        pass

    @abstractmethod
    def describe(self) -> str:
        """Human-readable location for logs (file path, table/key)."""
        pass


__all__ = [
    "EventHandler",
    "ForwardRequest",
    "ILibraryClient",
    "ISyncProvider",
    "IStateBackend",
]
