"""
Playlist enumeration through a rendered page.

The song list is lazy-loaded, so the page is scrolled to the bottom (bounded by
a wall-clock ceiling) before the song anchors are collected. When no anchors
turn up at all, the rendered body is scanned for anything identifier-shaped.
"""
from __future__ import annotations

import logging
import re
from time import perf_counter
from typing import Any, Dict, List, Optional

from lib.suno import dom_scripts
from lib.suno.config import ExtractorConfig, load_config
from lib.suno.models import PlaylistMember, PlaylistRecord
from lib.suno.normalizer import (
    IDENTIFIER_PATTERN,
    clean_text,
    extract_playlist_id,
    normalize_identifier,
    scan_identifiers,
)
from playwright_pool import open_session

logger = logging.getLogger(__name__)

_CREATOR_HREF_RE = re.compile(r"/@([a-zA-Z0-9_]+)")


def build_playlist_record(
    playlist_id: str,
    raw: Optional[Dict[str, Any]],
    config: ExtractorConfig | None = None,
) -> PlaylistRecord:
    """PLAYLIST_DETAILS script output -> PlaylistRecord (no browser needed)."""
    config = config or load_config()
    raw = raw if isinstance(raw, dict) else {}
    playlist_id = normalize_identifier(playlist_id)

    members: List[PlaylistMember] = []
    seen: set[str] = set()
    for song in raw.get("songs") or []:
        if not isinstance(song, dict):
            continue
        ident = normalize_identifier(str(song.get("identifier") or ""))
        if not ident or ident == playlist_id or ident in seen:
            continue
        seen.add(ident)
        members.append(PlaylistMember(
            identifier=ident,
            title=clean_text(song.get("title")) or "",
            artist=clean_text(song.get("artist")) or "",
        ))

    discovery = "anchors"
    if not members:
        discovery = "body_scan"
        members = [PlaylistMember(identifier=i) for i in scan_identifiers(raw.get("bodyHtml") or "", exclude=playlist_id)]

    creator = None
    m = _CREATOR_HREF_RE.search(raw.get("creatorHref") or "")
    if m:
        creator = m.group(1)

    return PlaylistRecord(
        identifier=playlist_id,
        title=clean_text(raw.get("title")) or config.unknown_playlist_title,
        description=clean_text(raw.get("description"), collapse=False),
        creator_handle=creator,
        members=tuple(members),
        discovery=discovery,
    )


async def _scroll_to_end(page, config: ExtractorConfig) -> None:
    await page.evaluate(dom_scripts.SCROLL_TO_END, {
        "step": config.scroll_step_px,
        "interval": config.scroll_interval_ms,
        "ceiling": config.scroll_ceiling_ms,
    })


async def enumerate_on_page(page, playlist_id: str, config: ExtractorConfig) -> PlaylistRecord:
    timings: Dict[str, int] = {}
    t0 = perf_counter()
    await page.navigate(config.playlist_url(playlist_id), strategy="networkIdle", timeout_ms=config.nav_timeout_ms)
    timings["goto_ms"] = int((perf_counter() - t0) * 1000)
    await page.wait(config.playlist_settle_ms)

    t1 = perf_counter()
    await _scroll_to_end(page, config)
    timings["scroll_ms"] = int((perf_counter() - t1) * 1000)
    await page.wait(config.playlist_settle_ms)

    t2 = perf_counter()
    raw = await page.evaluate(dom_scripts.PLAYLIST_DETAILS, {
        "playlistId": playlist_id,
        "songAnchorSelector": config.song_anchor_selector,
        "idPattern": IDENTIFIER_PATTERN,
    })
    timings["extract_ms"] = int((perf_counter() - t2) * 1000)

    record = build_playlist_record(playlist_id, raw, config)
    logger.info(
        f"[PLAYLIST] {playlist_id}: {len(record.members)} songs via {record.discovery} "
        f"title={record.title!r} creator={record.creator_handle} timings={timings}"
    )
    return record


async def enumerate_playlist(ref: str, config: ExtractorConfig | None = None, session=None) -> PlaylistRecord:
    """
    Playlist URL or identifier -> PlaylistRecord.

    InvalidReference is raised before any browser is launched. Pass ``session``
    to reuse an already open RenderedPageSession; otherwise one is opened and
    torn down here.
    """
    config = config or load_config()
    playlist_id = extract_playlist_id(ref)

    if session is not None:
        async with session.page() as page:
            return await enumerate_on_page(page, playlist_id, config)

    async with open_session(config) as own_session:
        async with own_session.page() as page:
            return await enumerate_on_page(page, playlist_id, config)
