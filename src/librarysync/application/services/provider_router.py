"""Resolves which provider owns a namespaced entity id.

Candidate prefixes, in the order they are tried:

    youtube<suffix>:  spotify<suffix>:   built-in providers (suffix by kind)
    <extension>:                         every installed extension, no suffix

where the suffix is empty for plain entities and ``-playlist`` for
playlists. The first prefix the id starts with decides the owner. An id
matching none of them is library-local: not an error, simply not forwarded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache

from librarysync.domain.entities import Playlist, Song
from librarysync.domain.ports import ForwardRequest, ILibraryClient
from librarysync.domain.value_objects import namespace_prefix, strip_namespace

logger = logging.getLogger(__name__)


class RequestKind(str, Enum):
    """Plain entities and playlists use distinct provider namespaces."""

    ENTITY = "entity"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class RouteMatch:
    """Owner of an id and the exact prefix that matched."""

    owner: str
    prefix: str

    def strip(self, entity_id: str) -> str:
        """The id as the owner knows it, without the matched prefix."""
        return strip_namespace(entity_id, self.prefix)


@lru_cache(maxsize=64)
def _compile(prefixes: tuple[str, ...]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(p) for p in prefixes)
    return re.compile(f"^({alternatives}).*$", re.DOTALL)


class ProviderRouter:
    """Maps entity ids to owning providers.

    Example:
        router = ProviderRouter(library, builtin_providers=["youtube", "spotify"])
        match = await router.match("spotify-playlist:XYZ", RequestKind.PLAYLIST)
        # RouteMatch(owner="spotify", prefix="spotify-playlist:")
    """

    def __init__(
        self,
        library: ILibraryClient,
        builtin_providers: list[str] | tuple[str, ...] = ("youtube", "spotify"),
        playlist_suffix: str = "-playlist",
    ) -> None:
        self._library = library
        self._builtin_providers = tuple(builtin_providers)
        self._playlist_suffix = playlist_suffix

    def _suffix(self, kind: RequestKind) -> str:
        return self._playlist_suffix if kind is RequestKind.PLAYLIST else ""

    async def _installed_extensions(self) -> list[str]:
        try:
            return list(await self._library.list_installed_extensions())
        except Exception as e:
            # Built-in namespaces still route without the extension list.
            logger.warning("Could not list installed extensions: %s", e)
            return []

    # Hey future me - order matters here! Built-in providers come first, then
    # whatever extensions the host reports right now (asked fresh every call,
    # extensions come and go). First prefix wins, so a duplicate keeps the
    # built-in owner.
    async def candidate_prefixes(
        self, kind: RequestKind = RequestKind.ENTITY
    ) -> list[tuple[str, str]]:
        """(owner, prefix) pairs in matching order, each prefix once."""
        suffix = self._suffix(kind)
        candidates: list[tuple[str, str]] = [
            (tag, namespace_prefix(tag, suffix)) for tag in self._builtin_providers
        ]
        candidates.extend(
            (ext, namespace_prefix(ext)) for ext in await self._installed_extensions() if ext
        )

        unique: list[tuple[str, str]] = []
        seen: set[str] = set()
        for owner, prefix in candidates:
            if prefix not in seen:
                seen.add(prefix)
                unique.append((owner, prefix))
        return unique

    @staticmethod
    def _match_in(candidates: list[tuple[str, str]], entity_id: str) -> RouteMatch | None:
        if not candidates:
            return None
        found = _compile(tuple(prefix for _, prefix in candidates)).match(entity_id)
        if found is None:
            return None
        matched = found.group(1)
        owner = next(owner for owner, prefix in candidates if prefix == matched)
        return RouteMatch(owner=owner, prefix=matched)

    async def match(
        self, entity_id: str, kind: RequestKind = RequestKind.ENTITY
    ) -> RouteMatch | None:
        """Resolve the owner of entity_id, None when it is library-local."""
        return self._match_in(await self.candidate_prefixes(kind), entity_id)

    async def filter_playlists(self, playlists: list[Playlist]) -> list[Playlist]:
        """Keep only playlists whose id is owned by some provider."""
        if not playlists:
            return []
        candidates = await self.candidate_prefixes(RequestKind.PLAYLIST)
        owned = [p for p in playlists if self._match_in(candidates, p.id) is not None]
        if len(owned) != len(playlists):
            logger.debug(
                "Skipped %d library-local playlists", len(playlists) - len(owned)
            )
        return owned

    # ==================== Forwarding ====================

    async def forward_playlist_songs(
        self,
        playlist_id: str,
        invalidate_cache: bool,
        page_token: object = None,
    ) -> ForwardRequest | None:
        """Rewrite a playlist-songs request for the provider owning the playlist."""
        matched = await self.match(playlist_id, RequestKind.PLAYLIST)
        if matched is None:
            return None
        logger.debug("Forwarding playlist %s to %s", playlist_id, matched.owner)
        return ForwardRequest(
            forward_to=matched.owner,
            transformed_data=[matched.strip(playlist_id), invalidate_cache, page_token],
        )

    async def forward_playback_details(self, song: Song) -> ForwardRequest | None:
        """Rewrite a playback-details request for the provider owning the song."""
        matched = await self.match(song.id, RequestKind.ENTITY)
        if matched is None:
            return None
        logger.debug("Forwarding playback details of %s to %s", song.id, matched.owner)
        return ForwardRequest(
            forward_to=matched.owner,
            transformed_data=[song.with_id(matched.strip(song.id))],
        )
