"""Domain entities.

Songs and playlists travel between the host library and the providers in the
host's wire format (``_id``, ``playbackUrl``, ``playlist_id`` ...). The
entities below name the fields the sync engine reasons about and carry
every other key untouched in ``extra``, so an entity that goes through a
provider store comes back exactly as the host sent it.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from librarysync.domain.exceptions import ValidationError


class SongType(str, Enum):
    """Source-type tag of a song, as reported by the host library.

    LOCAL songs live on disk and are never pushed to providers.
    """

    LOCAL = "LOCAL"
    URL = "URL"
    YOUTUBE = "YOUTUBE"
    SPOTIFY = "SPOTIFY"
    DASH = "DASH"
    HLS = "HLS"


_SONG_KEYS = frozenset({"_id", "title", "duration", "playbackUrl", "type", "date_added"})
_PLAYLIST_KEYS = frozenset({"playlist_id", "playlist_name"})
_SONG_TYPE_VALUES = frozenset(t.value for t in SongType)


def _require_id(data: Any, key: str, kind: str) -> str:
    if not isinstance(data, dict):
        raise ValidationError(f"{kind} entry is not an object: {type(data).__name__}")
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{kind} entry has no string {key}")
    return value


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_song_type(value: Any) -> bool:
    return isinstance(value, str) and value in _SONG_TYPE_VALUES


# Hey future me - the host is JavaScript and sends whatever it has: "180" as a
# duration, null titles, string timestamps. We never coerce those. A modeled key
# whose value does not fit its field goes to extra untouched, the field gets its
# default, and to_dict() writes the extra value back instead of the field. That
# is what keeps a song byte-for-byte identical after a trip through a provider.
def _take(data: dict[str, Any], key: str, accepts: Any, extra: dict[str, Any]) -> Any:
    if key not in data:
        return None
    value = data[key]
    if accepts(value):
        return value
    extra[key] = value
    return None


@dataclass(frozen=True)
class Song:
    """A song as known to the library and to providers.

    Attributes:
        id: Namespaced identifier (``youtube:abc``) or a bare local id
        title: Display title
        duration: Length in seconds, int or float exactly as the host sent it
        playback_url: Locator the player streams from
        type: Source-type tag, None when the host sent an unknown tag
        date_added: Creation timestamp in epoch milliseconds
        extra: Every other wire key, plus modeled keys whose raw value did not
            fit the field; both are written back verbatim
    """

    id: str
    title: str = ""
    duration: float = 0.0
    playback_url: str | None = None
    type: SongType | None = None
    date_added: int | None = None
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_local(self) -> bool:
        """True for songs that originate from the local disk."""
        return self.type is SongType.LOCAL

    def with_id(self, new_id: str) -> "Song":
        """Return a copy carrying a different id and its own extra dict."""
        return replace(self, id=new_id, extra=dict(self.extra))

    @classmethod
    def from_dict(cls, data: Any) -> "Song":
        """Build a Song from the host wire format.

        Raises:
            ValidationError: If data is not an object or has no string ``_id``
        """
        song_id = _require_id(data, "_id", "Song")

        extra = {k: v for k, v in data.items() if k not in _SONG_KEYS}
        title = _take(data, "title", _is_str, extra)
        duration = _take(data, "duration", _is_number, extra)
        playback_url = _take(data, "playbackUrl", _is_str, extra)
        raw_type = _take(data, "type", _is_song_type, extra)
        date_added = _take(data, "date_added", _is_int, extra)

        return cls(
            id=song_id,
            title=title if title is not None else "",
            duration=duration if duration is not None else 0.0,
            playback_url=playback_url,
            type=SongType(raw_type) if raw_type is not None else None,
            date_added=date_added,
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the host wire format."""
        payload: dict[str, Any] = dict(self.extra)
        payload["_id"] = self.id
        if "title" not in self.extra:
            payload["title"] = self.title
        if "duration" not in self.extra:
            payload["duration"] = self.duration
        if self.playback_url is not None and "playbackUrl" not in self.extra:
            payload["playbackUrl"] = self.playback_url
        if self.type is not None and "type" not in self.extra:
            payload["type"] = self.type.value
        if self.date_added is not None and "date_added" not in self.extra:
            payload["date_added"] = self.date_added
        return payload


@dataclass(frozen=True)
class Playlist:
    """A playlist as known to the library and to providers.

    Track references and cover paths are provider-opaque and live in extra.
    """

    id: str
    name: str = ""
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def with_id(self, new_id: str) -> "Playlist":
        """Return a copy carrying a different id and its own extra dict."""
        return replace(self, id=new_id, extra=dict(self.extra))

    @classmethod
    def from_dict(cls, data: Any) -> "Playlist":
        """Build a Playlist from the host wire format.

        Raises:
            ValidationError: If data is not an object or has no string ``playlist_id``
        """
        playlist_id = _require_id(data, "playlist_id", "Playlist")
        extra = {k: v for k, v in data.items() if k not in _PLAYLIST_KEYS}
        name = _take(data, "playlist_name", _is_str, extra)
        return cls(id=playlist_id, name=name if name is not None else "", extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the host wire format."""
        payload: dict[str, Any] = dict(self.extra)
        payload["playlist_id"] = self.id
        if "playlist_name" not in self.extra:
            payload["playlist_name"] = self.name
        return payload



@dataclass
class StoredData:
    """The unit of persistence for one provider store.

    Always read fully, mutated in memory and written back fully.
    """

    songs: list[Song] = field(default_factory=list)
    playlists: list[Playlist] = field(default_factory=list)

    def song_ids(self) -> set[str]:
        return {s.id for s in self.songs}

    def playlist_ids(self) -> set[str]:
        return {p.id for p in self.playlists}

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "songs": [s.to_dict() for s in self.songs],
            "playlists": [p.to_dict() for p in self.playlists],
        }


__all__ = ["Playlist", "Song", "SongType", "StoredData"]
