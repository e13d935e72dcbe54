"""
Static-tier field extraction from raw song-page HTML.

Each field has an ordered chain of heuristics. A heuristic is a plain function
``(StaticPage) -> str | None``; the first non-empty answer wins and its name is
recorded as the field's provenance. Nothing in here raises on malformed input:
a heuristic that blows up is logged at DEBUG and treated as a miss.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from lib.suno.config import ExtractorConfig, load_config
from lib.suno.models import Provenance, SongRecord
from lib.suno.normalizer import clean_text, decode_html_entities

logger = logging.getLogger(__name__)

_BY_HANDLE_DESC_RE = re.compile(r"by\s+@?(\w+)", re.IGNORECASE)
_PROFILE_HREF_RE = re.compile(r"""href=["']?/@([a-zA-Z0-9_]+)["']?""", re.IGNORECASE)
_BY_HANDLE_ANY_RE = re.compile(r"by\s+@([a-zA-Z0-9_]+)", re.IGNORECASE)
_NEXT_DATA_RE = re.compile(r'<script[^>]*id=["\']__NEXT_DATA__["\'][^>]*>([\s\S]*?)</script>', re.IGNORECASE)


class StaticPage:
    """Raw HTML plus lazily parsed views of it, shared by all heuristics of one page."""

    def __init__(self, html: str, identifier: str, config: ExtractorConfig):
        self.html = html if isinstance(html, str) else ""
        self.identifier = identifier
        self.config = config
        self._soup: BeautifulSoup | None = None
        self._clip: Dict[str, Any] | None = None
        self._clip_loaded = False

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup

    def meta(self, *, prop: str | None = None, name: str | None = None) -> Optional[str]:
        """Content of a <meta property=...> / <meta name=...> tag, attribute order irrelevant."""
        attrs = {"property": prop} if prop else {"name": name}
        tag = self.soup.find("meta", attrs=attrs)
        if tag is None:
            return None
        content = tag.get("content")
        return content if isinstance(content, str) and content.strip() else None

    @property
    def clip(self) -> Dict[str, Any]:
        """``props.pageProps.clip`` from the embedded __NEXT_DATA__ block, or {}."""
        if not self._clip_loaded:
            self._clip_loaded = True
            self._clip = _load_next_data_clip(self.html, self.identifier)
        return self._clip or {}

    @property
    def clip_metadata(self) -> Dict[str, Any]:
        md = self.clip.get("metadata")
        return md if isinstance(md, dict) else {}


def _load_next_data_clip(html: str, identifier: str) -> Dict[str, Any]:
    m = _NEXT_DATA_RE.search(html)
    if not m:
        logger.debug(f"[STATIC] [{identifier}] No __NEXT_DATA__ found in HTML (length: {len(html)})")
        return {}
    try:
        data = json.loads(m.group(1))
    except ValueError as e:
        logger.debug(f"[STATIC] [{identifier}] Could not parse __NEXT_DATA__: {e}")
        return {}
    page_props = ((data or {}).get("props") or {}).get("pageProps") if isinstance(data, dict) else None
    if not isinstance(page_props, dict):
        return {}
    clip = page_props.get("clip")
    if not isinstance(clip, dict):
        logger.debug(f"[STATIC] [{identifier}] No clip in pageProps. Available: {', '.join(page_props.keys()) or '(empty)'}")
        return {}
    return clip


# =========================
# title
# =========================

def title_from_next_data(page: StaticPage) -> Optional[str]:
    return clean_text(page.clip.get("title"))


def title_from_og(page: StaticPage) -> Optional[str]:
    raw = page.meta(prop="og:title")
    if not raw:
        return None
    suffix = re.compile(rf"\s*\|\s*{re.escape(page.config.site_title_suffix)}\s*$", re.IGNORECASE)
    return clean_text(suffix.sub("", decode_html_entities(raw)))


# =========================
# cover
# =========================

def cover_from_og(page: StaticPage) -> Optional[str]:
    return clean_text(page.meta(prop="og:image"))


def cover_from_cdn(page: StaticPage) -> Optional[str]:
    return page.config.cover_url_for(page.identifier)


# =========================
# artist
# =========================

def artist_from_og_description(page: StaticPage) -> Optional[str]:
    desc = page.meta(prop="og:description")
    if not desc:
        return None
    m = _BY_HANDLE_DESC_RE.search(decode_html_entities(desc))
    return m.group(1) if m else None


def artist_from_profile_link(page: StaticPage) -> Optional[str]:
    m = _PROFILE_HREF_RE.search(page.html)
    return m.group(1) if m else None


def artist_from_by_handle(page: StaticPage) -> Optional[str]:
    m = _BY_HANDLE_ANY_RE.search(page.html)
    return m.group(1) if m else None


def artist_from_twitter_creator(page: StaticPage) -> Optional[str]:
    creator = clean_text(page.meta(name="twitter:creator"))
    if not creator:
        return None
    return creator.lstrip("@") or None


# =========================
# style / description
# =========================

def style_from_next_data(page: StaticPage) -> Optional[str]:
    return clean_text(page.clip_metadata.get("tags"), collapse=False)


def description_from_next_data(page: StaticPage) -> Optional[str]:
    return clean_text(page.clip_metadata.get("prompt"), collapse=False)


Heuristic = Tuple[Provenance, Callable[[StaticPage], Optional[str]]]

TITLE_CHAIN: Tuple[Heuristic, ...] = (
    (Provenance.NEXT_DATA, title_from_next_data),
    (Provenance.OG_TITLE, title_from_og),
)
COVER_CHAIN: Tuple[Heuristic, ...] = (
    (Provenance.OG_IMAGE, cover_from_og),
    (Provenance.CDN_FALLBACK, cover_from_cdn),
)
ARTIST_CHAIN: Tuple[Heuristic, ...] = (
    (Provenance.OG_DESCRIPTION, artist_from_og_description),
    (Provenance.PROFILE_LINK, artist_from_profile_link),
    (Provenance.BY_HANDLE, artist_from_by_handle),
    (Provenance.TWITTER_CREATOR, artist_from_twitter_creator),
)
STYLE_CHAIN: Tuple[Heuristic, ...] = (
    (Provenance.NEXT_DATA, style_from_next_data),
)
DESCRIPTION_CHAIN: Tuple[Heuristic, ...] = (
    (Provenance.NEXT_DATA, description_from_next_data),
)


def run_chain(page: StaticPage, chain: Sequence[Heuristic], field_name: str) -> Tuple[Optional[str], Optional[Provenance]]:
    """Try heuristics left to right; first non-empty result wins."""
    for provenance, heuristic in chain:
        try:
            value = heuristic(page)
        except Exception as e:
            logger.debug(f"[STATIC] [{page.identifier}] {field_name}/{provenance.value} failed: {e}")
            continue
        if value:
            return value, provenance
    return None, None


def extract_song_fields(html: str, identifier: str, config: ExtractorConfig | None = None) -> SongRecord:
    """Best-effort SongRecord from raw song-page HTML. Never raises."""
    config = config or load_config()
    page = StaticPage(html, identifier, config)
    default = SongRecord.default(identifier, config)
    provenance: Dict[str, str] = dict(default.provenance)

    def pick(field_name: str, chain: Sequence[Heuristic], fallback: Any) -> Any:
        value, source = run_chain(page, chain, field_name)
        if source is None:
            return fallback
        provenance[field_name] = source.value
        return value

    record = SongRecord(
        identifier=identifier,
        title=pick("title", TITLE_CHAIN, default.title),
        artist=pick("artist", ARTIST_CHAIN, default.artist),
        cover_url=pick("cover_url", COVER_CHAIN, default.cover_url),
        style=pick("style", STYLE_CHAIN, default.style),
        description=pick("description", DESCRIPTION_CHAIN, default.description),
        provenance=provenance,
    )
    logger.debug(
        f"[STATIC] [{identifier}] title={record.title!r} artist={record.artist!r} "
        f"style={'yes' if record.style else 'no'} desc={'yes' if record.description else 'no'}"
    )
    return record
