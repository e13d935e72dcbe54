"""
Extractor configuration: defaults and env overrides in one immutable structure.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Tuple

_ENV = os.getenv("ENV", "prod").lower()

SUNO_BASE_URL = os.getenv("SUNO_BASE_URL", "https://suno.com").rstrip("/")
SUNO_PROFILE_API_URL = os.getenv("SUNO_PROFILE_API_URL", "https://studio-api.suno.ai/api/profiles/{handle}")
SUNO_CDN_COVER_TEMPLATE = os.getenv("SUNO_CDN_COVER_TEMPLATE", "https://cdn2.suno.ai/image_large_{identifier}.jpeg")
SUNO_UNKNOWN_ARTIST = os.getenv("SUNO_UNKNOWN_ARTIST", "Suno AI")
SUNO_USER_AGENT = os.getenv(
    "SUNO_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
SUNO_HTTP_TIMEOUT_S = float(os.getenv("SUNO_HTTP_TIMEOUT_S", "8"))
SUNO_PROFILE_API_TIMEOUT_S = float(os.getenv("SUNO_PROFILE_API_TIMEOUT_S", "10"))
SUNO_NAV_TIMEOUT_MS = int(os.getenv("SUNO_NAV_TIMEOUT_MS", "30000"))
SUNO_READY_TIMEOUT_MS = int(os.getenv("SUNO_READY_TIMEOUT_MS", "10000"))
SUNO_SETTLE_MS = int(os.getenv("SUNO_SETTLE_MS", "500"))
SUNO_PLAYLIST_SETTLE_MS = int(os.getenv("SUNO_PLAYLIST_SETTLE_MS", "2000"))
SUNO_SCROLL_STEP_PX = int(os.getenv("SUNO_SCROLL_STEP_PX", "500"))
SUNO_SCROLL_INTERVAL_MS = int(os.getenv("SUNO_SCROLL_INTERVAL_MS", "200"))
SUNO_SCROLL_CEILING_MS = int(os.getenv("SUNO_SCROLL_CEILING_MS", "10000"))
SUNO_BATCH_CONCURRENCY = int(os.getenv("SUNO_BATCH_CONCURRENCY", "16"))
SUNO_ITEM_TIMEOUT_S = float(os.getenv("SUNO_ITEM_TIMEOUT_S", "60"))
SUNO_PLAYWRIGHT_HEADLESS = os.getenv("SUNO_PLAYWRIGHT_HEADLESS", "1") != "0"
PLAYWRIGHT_EXECUTABLE_PATH = os.getenv("PLAYWRIGHT_EXECUTABLE_PATH") or None

# Genre-ish words used to recognise the style tag container on rendered pages
DEFAULT_STYLE_KEYWORDS: Tuple[str, ...] = (
    "pop", "rock", "jazz", "electronic", "vocal", "piano",
    "guitar", "beat", "melody", "synth", "drum",
)
# Labels of the expand/collapse toggle that sits next to the description
DEFAULT_EXPAND_MARKERS: Tuple[str, ...] = ("More", "Less")


@dataclass(frozen=True)
class ExtractorConfig:
    base_url: str = SUNO_BASE_URL
    profile_api_url: str = SUNO_PROFILE_API_URL
    cdn_cover_template: str = SUNO_CDN_COVER_TEMPLATE
    unknown_artist: str = SUNO_UNKNOWN_ARTIST
    unknown_playlist_title: str = "Unknown Playlist"
    # og:title carries "<title> | Suno"; this is the part after the bar
    site_title_suffix: str = "Suno"
    user_agent: str = SUNO_USER_AGENT

    http_timeout_s: float = SUNO_HTTP_TIMEOUT_S
    profile_api_timeout_s: float = SUNO_PROFILE_API_TIMEOUT_S
    nav_timeout_ms: int = SUNO_NAV_TIMEOUT_MS
    ready_timeout_ms: int = SUNO_READY_TIMEOUT_MS
    settle_ms: int = SUNO_SETTLE_MS
    playlist_settle_ms: int = SUNO_PLAYLIST_SETTLE_MS
    scroll_step_px: int = SUNO_SCROLL_STEP_PX
    scroll_interval_ms: int = SUNO_SCROLL_INTERVAL_MS
    scroll_ceiling_ms: int = SUNO_SCROLL_CEILING_MS
    batch_concurrency: int = SUNO_BATCH_CONCURRENCY
    item_timeout_s: float = SUNO_ITEM_TIMEOUT_S

    headless: bool = SUNO_PLAYWRIGHT_HEADLESS
    executable_path: str | None = PLAYWRIGHT_EXECUTABLE_PATH
    # Container runs need the sandbox flags; local Chromium tends to crash with them
    container_mode: bool = bool(PLAYWRIGHT_EXECUTABLE_PATH) or _ENV == "prod"

    ready_selector: str = 'a[href^="/@"]'
    song_anchor_selector: str = 'a[href*="/song/"]'
    style_keywords: Tuple[str, ...] = field(default=DEFAULT_STYLE_KEYWORDS)
    expand_markers: Tuple[str, ...] = field(default=DEFAULT_EXPAND_MARKERS)

    def song_url(self, identifier: str) -> str:
        return f"{self.base_url}/song/{identifier}"

    def playlist_url(self, identifier: str) -> str:
        return f"{self.base_url}/playlist/{identifier}"

    def profile_url(self, handle: str) -> str:
        return f"{self.base_url}/@{handle}"

    def cover_url_for(self, identifier: str) -> str:
        return self.cdn_cover_template.format(identifier=identifier)

    def with_overrides(self, **changes) -> "ExtractorConfig":
        return replace(self, **changes)


_default_config: ExtractorConfig | None = None


def load_config() -> ExtractorConfig:
    global _default_config
    if _default_config is None:
        _default_config = ExtractorConfig()
    return _default_config
