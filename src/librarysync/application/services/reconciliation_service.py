"""Startup reconciliation between the library and every sync provider.

Four independent one-way passes, run in this order:

    songs      library  -> providers   non-local songs, merged (no overwrite)
    songs      providers -> library    inserted when the library lacks them
    playlists  library  -> providers   provider-owned playlists only
    playlists  providers -> library    inserted when the library lacks them

A failure on one entity is logged and recorded in the pass result, the pass
moves on to the next entity. Running the whole reconciliation twice adds
nothing the second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from librarysync.application.services.provider_router import ProviderRouter
from librarysync.domain.entities import SongType
from librarysync.domain.ports import ILibraryClient
from librarysync.domain.value_objects import namespace_prefix
from librarysync.infrastructure.observability import log_operation, set_correlation_id
from librarysync.infrastructure.providers import FanOutErrors, SyncProviderRegistry

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outcome of one reconciliation pass.

    Attributes:
        name: Pass identifier, e.g. "songs_to_library"
        examined: Entities looked at
        pushed: Entities handed to the other side
        skipped: Entities the other side already had
        errors: One message per failed entity, library call or provider
    """

    name: str
    examined: int = 0
    pushed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def record_fan_out_errors(self, errors: FanOutErrors) -> None:
        self.errors.extend(f"provider {name}: {msg}" for name, msg in errors.items())


@dataclass
class ReconciliationReport:
    """Results of all four passes of one run."""

    correlation_id: str
    songs_to_providers: PassResult
    songs_to_library: PassResult
    playlists_to_providers: PassResult
    playlists_to_library: PassResult

    @property
    def passes(self) -> list[PassResult]:
        return [
            self.songs_to_providers,
            self.songs_to_library,
            self.playlists_to_providers,
            self.playlists_to_library,
        ]

    @property
    def has_errors(self) -> bool:
        return any(not p.ok for p in self.passes)

    def summary(self) -> dict[str, dict[str, int]]:
        return {
            p.name: {
                "examined": p.examined,
                "pushed": p.pushed,
                "skipped": p.skipped,
                "errors": len(p.errors),
            }
            for p in self.passes
        }


class ReconciliationService:
    """Two-way merge of library state and provider state.

    Args:
        library: Host library API
        registry: Registered sync providers
        router: Decides which library playlists belong to providers
        package_namespace: Namespace the host prepends to entities this
            extension inserts; a library id ``"<namespace>:<id>"`` counts as
            the provider entity ``<id>``
    """

    def __init__(
        self,
        library: ILibraryClient,
        registry: SyncProviderRegistry,
        router: ProviderRouter,
        package_namespace: str,
    ) -> None:
        self._library = library
        self._registry = registry
        self._router = router
        self._namespace_prefix = namespace_prefix(package_namespace)

    async def run(self) -> ReconciliationReport:
        """Run all passes and return their results. Never raises for data errors."""
        correlation_id = set_correlation_id()
        async with log_operation(logger, "reconciliation", provider_count=len(self._registry)):
            report = ReconciliationReport(
                correlation_id=correlation_id,
                songs_to_providers=await self.store_library_songs_in_providers(),
                songs_to_library=await self.store_provider_songs_in_library(),
                playlists_to_providers=await self.store_library_playlists_in_providers(),
                playlists_to_library=await self.store_provider_playlists_in_library(),
            )

        if report.has_errors:
            logger.warning("Reconciliation finished with errors: %s", report.summary())
        else:
            logger.info("Reconciliation finished: %s", report.summary())
        return report

    # ==================== Membership ====================

    # Hey future me - the host query is a LIKE on "%<id>", so "xabc" comes back
    # for "abc" too. Only an exact id or "<our namespace>:<id>" counts as present.
    def _is_same_entity(self, library_id: str, provider_id: str) -> bool:
        return library_id == provider_id or library_id == f"{self._namespace_prefix}{provider_id}"

    async def is_song_in_library(self, song_id: str) -> bool:
        existing = await self._library.query_songs({"song": {"_id": f"%{song_id}"}})
        return any(self._is_same_entity(s.id, song_id) for s in existing)

    async def is_playlist_in_library(self, playlist_id: str) -> bool:
        existing = await self._library.query_playlists(
            {"playlist": {"playlist_id": f"%{playlist_id}"}}
        )
        return any(self._is_same_entity(p.id, playlist_id) for p in existing)

    # ==================== Library -> Providers ====================

    async def store_library_songs_in_providers(self) -> PassResult:
        result = PassResult("songs_to_providers")
        try:
            songs = await self._library.query_songs(
                {"song": {"type": SongType.LOCAL.value}}, invert=True
            )
        except Exception as e:
            logger.error("Could not query non-local songs from library: %s", e)
            result.errors.append(f"library: {e}")
            return result

        songs = [s for s in songs if not s.is_local]
        result.examined = result.pushed = len(songs)
        result.record_fan_out_errors(await self._registry.store_songs(songs, overwrite=False))
        return result

    async def store_library_playlists_in_providers(self) -> PassResult:
        result = PassResult("playlists_to_providers")
        try:
            playlists = await self._library.query_playlists({"playlist": {}})
        except Exception as e:
            logger.error("Could not query playlists from library: %s", e)
            result.errors.append(f"library: {e}")
            return result

        owned = await self._router.filter_playlists(playlists)
        result.examined = len(playlists)
        result.pushed = len(owned)
        result.skipped = len(playlists) - len(owned)
        result.record_fan_out_errors(
            await self._registry.store_playlists(owned, overwrite=False)
        )
        return result

    # ==================== Providers -> Library ====================

    async def store_provider_songs_in_library(self) -> PassResult:
        result = PassResult("songs_to_library")
        songs, errors = await self._registry.list_songs()
        result.record_fan_out_errors(errors)

        handled: set[str] = set()
        for song in songs:
            result.examined += 1
            if song.id in handled:
                result.skipped += 1
                continue
            handled.add(song.id)
            try:
                if await self.is_song_in_library(song.id):
                    result.skipped += 1
                    continue
                await self._library.add_songs(song)
                result.pushed += 1
            except Exception as e:
                logger.warning("Could not sync song %s into library: %s", song.id, e)
                result.errors.append(f"song {song.id}: {e}")
        return result

    async def store_provider_playlists_in_library(self) -> PassResult:
        result = PassResult("playlists_to_library")
        playlists, errors = await self._registry.list_playlists()
        result.record_fan_out_errors(errors)

        handled: set[str] = set()
        for playlist in playlists:
            result.examined += 1
            if playlist.id in handled:
                result.skipped += 1
                continue
            handled.add(playlist.id)
            try:
                if await self.is_playlist_in_library(playlist.id):
                    result.skipped += 1
                    continue
                await self._library.add_playlist(playlist)
                result.pushed += 1
            except Exception as e:
                logger.warning("Could not sync playlist %s into library: %s", playlist.id, e)
                result.errors.append(f"playlist {playlist.id}: {e}")
        return result


__all__ = ["PassResult", "ReconciliationReport", "ReconciliationService"]
