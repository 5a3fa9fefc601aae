"""Sync Provider Registry implementation.

Holds every configured sync provider and fans library changes out to all
of them. A provider that fails is logged and reported back; the others
still receive the change.
"""

import logging
from collections.abc import Awaitable, Callable

from librarysync.domain.entities import Playlist, Song
from librarysync.domain.exceptions import EntityNotFoundError
from librarysync.domain.ports import ISyncProvider

logger = logging.getLogger(__name__)

# provider name -> error message
FanOutErrors = dict[str, str]


class SyncProviderRegistry:
    """Registry of sync providers, in registration order.

    Registering a provider under an existing name replaces it.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._providers: dict[str, ISyncProvider] = {}

    def register(self, provider: ISyncProvider) -> None:
        """Register a sync provider.

        Args:
            provider: Provider implementation to register
        """
        self._providers[provider.name] = provider
        logger.info(
            "Registered sync provider: %s (namespace=%s)", provider.name, provider.namespace
        )

    def unregister(self, name: str) -> None:
        """Unregister a sync provider; unknown names are ignored.

        Args:
            name: Name of the provider to unregister
        """
        if self._providers.pop(name, None) is not None:
            logger.info("Unregistered sync provider: %s", name)

    def get_provider(self, name: str) -> ISyncProvider | None:
        """Get a specific provider by name."""
        return self._providers.get(name)

    def require(self, name: str) -> ISyncProvider:
        """Get a provider that must exist.

        Raises:
            EntityNotFoundError: If no provider is registered under name
        """
        provider = self._providers.get(name)
        if provider is None:
            raise EntityNotFoundError("SyncProvider", name)
        return provider

    def get_all_providers(self) -> list[ISyncProvider]:
        """Get all registered providers."""
        return list(self._providers.values())

    def __len__(self) -> int:
        return len(self._providers)

    # ==================== Fan-out ====================

    # Hey future me - providers run one after another in registration order, NOT
    # gathered. One broken provider gets logged and lands in the returned dict,
    # the rest still get the call. Callers decide what an error means.
    async def _fan_out(
        self,
        action: str,
        call: Callable[[ISyncProvider], Awaitable[None]],
    ) -> FanOutErrors:
        errors: FanOutErrors = {}
        for provider in self._providers.values():
            try:
                await call(provider)
            except Exception as e:
                logger.warning(
                    "Provider '%s' failed to %s: %s", provider.name, action, e, exc_info=True
                )
                errors[provider.name] = str(e)
        return errors

    async def store_songs(self, songs: list[Song], overwrite: bool = False) -> FanOutErrors:
        """Store songs in every provider."""
        return await self._fan_out(
            "store songs", lambda p: p.store_songs_sanitized(overwrite, *songs)
        )

    async def remove_songs(self, songs: list[Song]) -> FanOutErrors:
        """Remove songs from every provider."""
        return await self._fan_out("remove songs", lambda p: p.remove_songs_sanitized(*songs))

    async def store_playlists(
        self, playlists: list[Playlist], overwrite: bool = False
    ) -> FanOutErrors:
        """Store playlists in every provider."""
        return await self._fan_out(
            "store playlists", lambda p: p.store_playlists_sanitized(overwrite, *playlists)
        )

    async def remove_playlists(self, playlists: list[Playlist]) -> FanOutErrors:
        """Remove playlists from every provider."""
        return await self._fan_out(
            "remove playlists", lambda p: p.remove_playlists_sanitized(*playlists)
        )

    async def list_songs(self) -> tuple[list[Song], FanOutErrors]:
        """Songs of all providers concatenated, in registration order."""
        songs: list[Song] = []

        async def collect(provider: ISyncProvider) -> None:
            songs.extend(await provider.list_songs())

        errors = await self._fan_out("list songs", collect)
        return songs, errors

    async def list_playlists(self) -> tuple[list[Playlist], FanOutErrors]:
        """Playlists of all providers concatenated, in registration order."""
        playlists: list[Playlist] = []

        async def collect(provider: ISyncProvider) -> None:
            playlists.extend(await provider.list_playlists())

        errors = await self._fan_out("list playlists", collect)
        return playlists, errors

    async def wait_idle(self) -> None:
        """Wait for the write queues of all providers to drain."""
        for provider in self._providers.values():
            await provider.wait_idle()
