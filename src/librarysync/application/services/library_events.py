"""Library event handlers.

Keeps providers in step with the library while the host is running and
forwards playback requests for provider-owned ids. Handlers never raise into
the host: a failure is logged and the event is dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from librarysync.application.services.provider_router import ProviderRouter
from librarysync.domain.entities import Playlist, Song
from librarysync.domain.ports import EventHandler, ForwardRequest, ILibraryClient
from librarysync.infrastructure.observability import set_correlation_id
from librarysync.infrastructure.providers import SyncProviderRegistry

logger = logging.getLogger(__name__)


def _as_songs(items: Iterable[Song | dict[str, Any]]) -> list[Song]:
    return [item if isinstance(item, Song) else Song.from_dict(item) for item in items]


def _as_playlists(items: Iterable[Playlist | dict[str, Any]]) -> list[Playlist]:
    return [item if isinstance(item, Playlist) else Playlist.from_dict(item) for item in items]


class LibraryEventHandlers:
    """Subscribes the sync engine to host library events.

    Payloads may arrive as entities or in the host wire format.
    """

    def __init__(
        self,
        library: ILibraryClient,
        registry: SyncProviderRegistry,
        router: ProviderRouter,
    ) -> None:
        self._library = library
        self._registry = registry
        self._router = router

    def handlers(self) -> dict[str, EventHandler]:
        """Event name -> handler, in subscription order."""
        return {
            "songAdded": self.on_song_added,
            "songRemoved": self.on_song_removed,
            "playlistAdded": self.on_playlist_added,
            "playlistRemoved": self.on_playlist_removed,
            "requestedPlaylistSongs": self.on_requested_playlist_songs,
            "playbackDetailsRequested": self.on_playback_details_requested,
        }

    # Hey future me - call this once per extension start. The host keeps every
    # subscription it gets, so a second call means every event is handled twice.
    def register(self) -> None:
        for event_name, handler in self.handlers().items():
            self._library.subscribe(event_name, handler)
        logger.info("Subscribed to %d library events", len(self.handlers()))

    # ==================== Library changes ====================

    async def on_song_added(self, songs: Iterable[Song | dict[str, Any]]) -> None:
        set_correlation_id()
        try:
            remote = [s for s in _as_songs(songs) if not s.is_local]
            if remote:
                await self._registry.store_songs(remote, overwrite=False)
        except Exception as e:
            logger.error("songAdded handler failed: %s", e, exc_info=True)

    async def on_song_removed(self, songs: Iterable[Song | dict[str, Any]]) -> None:
        set_correlation_id()
        try:
            removed = _as_songs(songs)
            if removed:
                await self._registry.remove_songs(removed)
        except Exception as e:
            logger.error("songRemoved handler failed: %s", e, exc_info=True)

    async def on_playlist_added(self, playlists: Iterable[Playlist | dict[str, Any]]) -> None:
        set_correlation_id()
        try:
            owned = await self._router.filter_playlists(_as_playlists(playlists))
            if owned:
                await self._registry.store_playlists(owned, overwrite=False)
        except Exception as e:
            logger.error("playlistAdded handler failed: %s", e, exc_info=True)

    async def on_playlist_removed(self, playlists: Iterable[Playlist | dict[str, Any]]) -> None:
        set_correlation_id()
        try:
            removed = _as_playlists(playlists)
            if removed:
                await self._registry.remove_playlists(removed)
        except Exception as e:
            logger.error("playlistRemoved handler failed: %s", e, exc_info=True)

    # ==================== Forwarding ====================

    async def on_requested_playlist_songs(
        self,
        playlist_id: str,
        invalidate_cache: bool = False,
        page_token: object = None,
    ) -> ForwardRequest | None:
        set_correlation_id()
        try:
            return await self._router.forward_playlist_songs(
                playlist_id, invalidate_cache, page_token
            )
        except Exception as e:
            logger.error("requestedPlaylistSongs handler failed: %s", e, exc_info=True)
            return None

    async def on_playback_details_requested(
        self, song: Song | dict[str, Any]
    ) -> ForwardRequest | None:
        set_correlation_id()
        try:
            return await self._router.forward_playback_details(_as_songs([song])[0])
        except Exception as e:
            logger.error("playbackDetailsRequested handler failed: %s", e, exc_info=True)
            return None
