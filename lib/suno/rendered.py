"""
Rendered-tier field extraction: query the live DOM after page scripts ran.

Slower than the static tier but sees values the server never renders (artist
link text, style tags, the expandable description).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from lib.suno import dom_scripts
from lib.suno.config import ExtractorConfig, load_config
from lib.suno.models import Provenance, SongRecord
from lib.suno.normalizer import clean_text

logger = logging.getLogger(__name__)


def _script_args(config: ExtractorConfig) -> Dict[str, Any]:
    return {
        "readySelector": config.ready_selector,
        "styleKeywords": list(config.style_keywords),
        "expandMarkers": list(config.expand_markers),
    }


def record_from_dom(identifier: str, raw: Optional[Dict[str, Any]], config: ExtractorConfig) -> SongRecord:
    """Turn the SONG_DETAILS script result into a SongRecord; missing bits fall back to defaults."""
    default = SongRecord.default(identifier, config)
    raw = raw if isinstance(raw, dict) else {}
    provenance = dict(default.provenance)
    values: Dict[str, Any] = {}

    for name, key, collapse in (
        ("title", "title", True),
        ("artist", "artist", True),
        ("cover_url", "coverUrl", True),
        ("style", "style", False),
        ("description", "description", False),
    ):
        value = clean_text(raw.get(key), collapse=collapse)
        if value:
            values[name] = value
            provenance[name] = Provenance.RENDERED.value

    return SongRecord(
        identifier=identifier,
        title=values.get("title", default.title),
        artist=values.get("artist", default.artist),
        cover_url=values.get("cover_url", default.cover_url),
        style=values.get("style", default.style),
        description=values.get("description", default.description),
        provenance=provenance,
    )


async def extract_rendered_fields(page, identifier: str, config: ExtractorConfig | None = None) -> SongRecord:
    """Page must already be positioned at the song. Waits for the artist link, then reads the DOM."""
    config = config or load_config()
    ready = await page.wait_for_selector(config.ready_selector, timeout_ms=config.ready_timeout_ms)
    if not ready:
        logger.debug(f"[RENDERED] [{identifier}] readiness selector never appeared; reading what is there")
    if config.settle_ms:
        await page.wait(config.settle_ms)
    raw = await page.evaluate(dom_scripts.SONG_DETAILS, _script_args(config))
    record = record_from_dom(identifier, raw, config)
    logger.info(
        f"[RENDERED] {identifier}: artist={record.artist!r}, "
        f"style={'yes' if record.style else 'no'}, desc={'yes' if record.description else 'no'}"
    )
    return record


async def fetch_rendered_song(session, identifier: str, config: ExtractorConfig | None = None) -> SongRecord:
    """Fresh page per song; the page is closed whatever happens."""
    config = config or load_config()
    async with session.page() as page:
        await page.navigate(config.song_url(identifier), strategy="networkIdle", timeout_ms=config.nav_timeout_ms)
        return await extract_rendered_fields(page, identifier, config)
