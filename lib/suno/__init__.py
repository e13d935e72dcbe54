"""
Suno song / playlist metadata extraction.

Public API (browser-free parts; the browser-backed entry points live in
lib.suno.playlist, lib.suno.orchestrator and lib.suno.profiles):
  - extract_song_fields(html, identifier, config) -> SongRecord
  - extract_playlist_id(url_or_id) -> str
  - load_config() -> ExtractorConfig
"""
from lib.suno.config import ExtractorConfig, load_config
from lib.suno.errors import (
    SunoExtractionError,
    InvalidReference,
    NavigationTimeout,
    RenderError,
    HttpError,
    FetchTimeout,
    FetchError,
)
from lib.suno.models import (
    SongRecord,
    PlaylistRecord,
    PlaylistMember,
    PlaylistSummary,
    StreamEvent,
    StreamEventKind,
    Provenance,
)
from lib.suno.normalizer import extract_playlist_id, normalize_identifier, decode_html_entities
from lib.suno.static_parser import extract_song_fields

__all__ = [
    "ExtractorConfig",
    "load_config",
    "SunoExtractionError",
    "InvalidReference",
    "NavigationTimeout",
    "RenderError",
    "HttpError",
    "FetchTimeout",
    "FetchError",
    "SongRecord",
    "PlaylistRecord",
    "PlaylistMember",
    "PlaylistSummary",
    "StreamEvent",
    "StreamEventKind",
    "Provenance",
    "extract_playlist_id",
    "normalize_identifier",
    "decode_html_entities",
    "extract_song_fields",
]
