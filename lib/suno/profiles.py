"""
A user's playlists: profile JSON API first, rendered profile page as fallback.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from lib.suno import dom_scripts
from lib.suno.config import ExtractorConfig, load_config
from lib.suno.fetcher import StaticPageFetcher
from lib.suno.models import PlaylistSummary
from lib.suno.normalizer import clean_text, normalize_handle, normalize_identifier
from playwright_pool import open_session

logger = logging.getLogger(__name__)

_SONG_COUNT_RE = re.compile(r"^(\d+)\s*songs?$", re.IGNORECASE)
_TRAILING_COUNT_RE = re.compile(r"\s*\d+\s*songs?\s*$", re.IGNORECASE)
# sanity bound; anything above is a misread number, not a song count
_MAX_SONG_COUNT = 10000


def _as_int(value: Any) -> Optional[int]:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def summaries_from_items(items: Any, config: ExtractorConfig | None = None) -> List[PlaylistSummary]:
    """API / __NEXT_DATA__ playlist objects -> summaries. Entries without an id are dropped."""
    config = config or load_config()
    if not isinstance(items, list):
        return []
    out: List[PlaylistSummary] = []
    for p in items:
        if not isinstance(p, dict):
            continue
        ident = normalize_identifier(str(p.get("id") or p.get("playlist_id") or ""))
        if not ident:
            continue
        out.append(PlaylistSummary(
            identifier=ident,
            url=config.playlist_url(ident),
            title=clean_text(p.get("name") or p.get("title")) or "Playlist",
            cover_url=p.get("image_url") or p.get("cover_url") or p.get("image") or None,
            song_count=_as_int(p.get("num_total_results") or p.get("song_count") or p.get("count")),
        ))
    return out


def parse_profile_payload(data: Any, config: ExtractorConfig | None = None) -> List[PlaylistSummary]:
    """The profile API has used several envelope shapes; accept all of them."""
    if isinstance(data, dict):
        items = data.get("playlists") or data.get("items") or data.get("results")
    else:
        items = data
    return summaries_from_items(items, config)


def _card_title(texts: List[str], link_text: str) -> str:
    for text in texts:
        if _SONG_COUNT_RE.match(text) or text.isdigit() or len(text) <= 2:
            continue
        text = _TRAILING_COUNT_RE.sub("", text).strip()
        if len(text) > 2:
            return text
    link_text = (link_text or "").strip()
    if 2 < len(link_text) < 80:
        title = _TRAILING_COUNT_RE.sub("", link_text).strip()
        if len(title) >= 2:
            return title
    return "Playlist"


def build_playlist_summaries(cards: Any, config: ExtractorConfig | None = None) -> List[PlaylistSummary]:
    """PROFILE_PLAYLIST_CARDS script output -> summaries."""
    config = config or load_config()
    out: List[PlaylistSummary] = []
    for card in cards if isinstance(cards, list) else []:
        if not isinstance(card, dict) or not card.get("id"):
            continue
        ident = normalize_identifier(str(card["id"]))
        count = None
        m = _SONG_COUNT_RE.match((card.get("countText") or "").strip())
        if m and 0 < int(m.group(1)) < _MAX_SONG_COUNT:
            count = int(m.group(1))
        texts = [t for t in (card.get("texts") or []) if isinstance(t, str)]
        out.append(PlaylistSummary(
            identifier=ident,
            url=config.playlist_url(ident),
            title=clean_text(_card_title(texts, card.get("linkText") or "")) or "Playlist",
            cover_url=card.get("coverUrl") or None,
            song_count=count,
        ))
    return out


async def _playlists_from_api(handle: str, config: ExtractorConfig) -> List[PlaylistSummary]:
    url = config.profile_api_url.format(handle=handle)
    async with StaticPageFetcher(config) as fetcher:
        data = await fetcher.fetch_json(url, timeout_s=config.profile_api_timeout_s)
    return parse_profile_payload(data, config)


async def _playlists_from_page(handle: str, config: ExtractorConfig, session_factory) -> List[PlaylistSummary]:
    async with session_factory(config) as session:
        async with session.page() as page:
            await page.navigate(config.profile_url(handle), strategy="domReady", timeout_ms=config.nav_timeout_ms)
            if not await page.wait_for_selector('a[href*="/playlist/"]', timeout_ms=config.ready_timeout_ms):
                logger.info(f"[PROFILE] @{handle}: no playlist links after waiting")
            await page.evaluate(dom_scripts.SCROLL_TO_END, {
                "step": config.scroll_step_px,
                "interval": config.scroll_interval_ms,
                "ceiling": config.scroll_ceiling_ms // 2,
            })
            await page.wait(config.settle_ms)

            from_next_data = summaries_from_items(await page.evaluate(dom_scripts.PROFILE_NEXT_DATA), config)
            if from_next_data:
                logger.info(f"[PROFILE] @{handle}: {len(from_next_data)} playlists from __NEXT_DATA__")
                return from_next_data

            cards = await page.evaluate(dom_scripts.PROFILE_PLAYLIST_CARDS)
            summaries = build_playlist_summaries(cards, config)
            logger.info(f"[PROFILE] @{handle}: {len(summaries)} playlists from DOM")
            return summaries


async def fetch_user_playlists(
    handle: str,
    config: ExtractorConfig | None = None,
    session_factory=open_session,
) -> List[PlaylistSummary]:
    config = config or load_config()
    handle = normalize_handle(handle)

    try:
        playlists = await _playlists_from_api(handle, config)
        if playlists:
            logger.info(f"[PROFILE] @{handle}: {len(playlists)} playlists via API")
            return playlists
        logger.info(f"[PROFILE] @{handle}: API returned no playlists")
    except Exception as e:
        logger.info(f"[PROFILE] @{handle}: API call failed: {e}")

    return await _playlists_from_page(handle, config, session_factory)
