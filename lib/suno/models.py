"""
Suno のデータモデル: 曲 / プレイリスト / ストリームイベント。
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from lib.suno.config import ExtractorConfig

SONG_FIELDS: Tuple[str, ...] = ("title", "artist", "cover_url", "style", "description")


class Provenance(str, Enum):
    """
    Which heuristic produced a field.
    Static tier values come first, in roughly the order the chains try them.
    """
    NEXT_DATA = "next_data"              # __NEXT_DATA__ clip object
    OG_TITLE = "og:title"
    OG_IMAGE = "og:image"
    OG_DESCRIPTION = "og:description"    # "by @handle" in the social description
    PROFILE_LINK = "profile_link"        # /@handle anywhere in the markup
    BY_HANDLE = "by_handle"              # "by @handle" anywhere in the document
    TWITTER_CREATOR = "twitter:creator"
    CDN_FALLBACK = "cdn_fallback"
    RENDERED = "rendered"                # live DOM after page scripts ran
    DEFAULT = "default"


@dataclass(frozen=True)
class SongRecord:
    """One song. Every field is independently optional; a record is never rejected."""
    identifier: str
    title: Optional[str]
    artist: str
    cover_url: str
    style: Optional[str] = None
    description: Optional[str] = None
    provenance: Mapping[str, str] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        # read-only view so a returned record cannot be edited through it
        object.__setattr__(self, "provenance", MappingProxyType(dict(self.provenance)))

    @classmethod
    def default(cls, identifier: str, config: ExtractorConfig) -> "SongRecord":
        return cls(
            identifier=identifier,
            title=None,
            artist=config.unknown_artist,
            cover_url=config.cover_url_for(identifier),
            style="",
            description="",
            provenance={
                "title": Provenance.DEFAULT.value,
                "artist": Provenance.DEFAULT.value,
                "cover_url": Provenance.CDN_FALLBACK.value,
                "style": Provenance.DEFAULT.value,
                "description": Provenance.DEFAULT.value,
            },
        )

    def resolved(self, name: str) -> bool:
        """True when the field came from the page rather than a default."""
        return self.provenance.get(name) not in (None, Provenance.DEFAULT.value, Provenance.CDN_FALLBACK.value)

    def merge(self, newer: "SongRecord") -> "SongRecord":
        """Overlay a later (usually rendered-tier) record: its resolved fields win."""
        if newer.identifier != self.identifier:
            raise ValueError(f"cannot merge {newer.identifier} into {self.identifier}")
        changes: Dict[str, Any] = {}
        provenance = dict(self.provenance)
        for name in SONG_FIELDS:
            value = getattr(newer, name)
            if value and newer.resolved(name):
                changes[name] = value
                provenance[name] = newer.provenance[name]
        return replace(self, provenance=provenance, **changes)

    def to_dict(self, with_provenance: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "identifier": self.identifier,
            "title": self.title,
            "artist": self.artist,
            "cover_url": self.cover_url,
            "style": self.style,
            "description": self.description,
        }
        if with_provenance:
            data["provenance"] = dict(self.provenance)
        return data


@dataclass(frozen=True)
class PlaylistMember:
    """A song card found on a playlist page (title/artist are best-effort)."""
    identifier: str
    title: str = ""
    artist: str = ""


@dataclass(frozen=True)
class PlaylistRecord:
    identifier: str
    title: str
    description: Optional[str]
    creator_handle: Optional[str]
    members: Tuple[PlaylistMember, ...] = ()
    # "anchors" when song links were found, "body_scan" for the raw-HTML fallback
    discovery: str = "anchors"

    @property
    def member_identifiers(self) -> Tuple[str, ...]:
        return tuple(m.identifier for m in self.members)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "title": self.title,
            "description": self.description,
            "creator_handle": self.creator_handle,
            "member_identifiers": list(self.member_identifiers),
            "members": [{"identifier": m.identifier, "title": m.title, "artist": m.artist} for m in self.members],
            "discovery": self.discovery,
        }


@dataclass(frozen=True)
class PlaylistSummary:
    """One entry of a user's playlist list."""
    identifier: str
    url: str
    title: str
    cover_url: Optional[str] = None
    song_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "url": self.url,
            "title": self.title,
            "cover_url": self.cover_url,
            "song_count": self.song_count,
        }


class StreamEventKind(str, Enum):
    SONG = "song"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    kind: StreamEventKind
    identifier: Optional[str] = None
    record: Optional[SongRecord] = None
    error: Optional[str] = None
    count: Optional[int] = None

    @classmethod
    def song(cls, record: SongRecord) -> "StreamEvent":
        return cls(StreamEventKind.SONG, identifier=record.identifier, record=record)

    @classmethod
    def done(cls, count: int) -> "StreamEvent":
        return cls(StreamEventKind.DONE, count=count)

    @classmethod
    def failed(cls, message: str) -> "StreamEvent":
        return cls(StreamEventKind.ERROR, error=message)

    def payload(self) -> Dict[str, Any]:
        if self.kind is StreamEventKind.SONG and self.record is not None:
            return self.record.to_dict()
        if self.kind is StreamEventKind.DONE:
            return {"done": True, "count": self.count}
        return {"error": self.error}
