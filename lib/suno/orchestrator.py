"""
Batch (static tier, concurrent) and streaming (rendered tier, sequential) orchestration.

Both absorb per-identifier failures into default records; neither lets one bad
song take down its siblings.
"""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import AsyncIterator, Callable, Dict, Iterable, List

from lib.suno.config import ExtractorConfig, load_config
from lib.suno.fetcher import StaticPageFetcher
from lib.suno.models import SongRecord, StreamEvent, StreamEventKind
from lib.suno.normalizer import is_identifier, normalize_identifier
from lib.suno.rendered import fetch_rendered_song
from lib.suno.static_parser import extract_song_fields
from playwright_pool import open_session

logger = logging.getLogger(__name__)


def _distinct(identifiers: Iterable[str]) -> List[str]:
    return [k for k in dict.fromkeys(normalize_identifier(i) for i in identifiers) if k]


def _malformed(keys: Iterable[str]) -> set[str]:
    """Keys that are not song identifiers; these never reach a URL."""
    return {k for k in keys if not is_identifier(k)}


async def fetch_song_static(
    identifier: str,
    config: ExtractorConfig | None = None,
    fetcher: StaticPageFetcher | None = None,
) -> SongRecord:
    """Fetch one song page and run the static chains. Fetch errors propagate."""
    config = config or load_config()
    identifier = normalize_identifier(identifier)
    if fetcher is not None:
        html = await fetcher.fetch(config.song_url(identifier))
    else:
        async with StaticPageFetcher(config) as own:
            html = await own.fetch(config.song_url(identifier))
    return extract_song_fields(html, identifier, config)


async def batch_fetch(
    identifiers: Iterable[str],
    config: ExtractorConfig | None = None,
    fetcher: StaticPageFetcher | None = None,
) -> Dict[str, SongRecord]:
    """
    Static tier for many songs at once.

    Returns exactly one entry per distinct (normalized) input identifier; a
    failed fetch or parse yields that identifier's default record. Each task
    writes only its own key.
    """
    config = config or load_config()
    keys = _distinct(identifiers)
    # seeded in input order so the result keeps it whatever order the tasks finish in
    results: Dict[str, SongRecord] = dict.fromkeys(keys)
    if not keys:
        return results

    malformed = _malformed(keys)
    for key in malformed:
        logger.info(f"[BATCH] {key!r}: not a song identifier, skipping fetch")
        results[key] = SongRecord.default(key, config)
    wanted = [k for k in keys if k not in malformed]

    sem = asyncio.Semaphore(max(1, config.batch_concurrency))
    t0 = perf_counter()

    async def _one(key: str, shared: StaticPageFetcher) -> None:
        async with sem:
            try:
                results[key] = await fetch_song_static(key, config, shared)
            except Exception as e:
                logger.warning(f"[BATCH] {key}: {type(e).__name__}: {e}")
                results[key] = SongRecord.default(key, config)

    if wanted and fetcher is not None:
        await asyncio.gather(*(_one(k, fetcher) for k in wanted))
    elif wanted:
        async with StaticPageFetcher(config) as shared:
            await asyncio.gather(*(_one(k, shared) for k in wanted))

    failed = sum(1 for r in results.values() if not r.resolved("title") and not r.resolved("artist"))
    logger.info(f"[BATCH] fetched {len(results)} songs ({failed} unresolved) in {int((perf_counter() - t0) * 1000)}ms")
    return results


async def stream_fetch(
    identifiers: Iterable[str],
    config: ExtractorConfig | None = None,
    session_factory: Callable[[ExtractorConfig], object] = open_session,
) -> AsyncIterator[StreamEvent]:
    """
    Rendered tier, one song at a time, each result yielded as soon as it exists.

    One browser for the whole sequence. Per-song failures and per-song timeouts
    become a default-valued song event. A session-level failure (launch, crash)
    yields one error event and ends the stream. Otherwise the last event is done.
    """
    config = config or load_config()
    ordered = _distinct(identifiers)
    malformed = _malformed(ordered)

    emitted = 0
    try:
        async with session_factory(config) as session:
            logger.info(f"[STREAM] browser ready, streaming {len(ordered)} songs")
            for key in ordered:
                if key in malformed:
                    logger.info(f"[STREAM] {key!r}: not a song identifier, skipping render")
                    emitted += 1
                    yield StreamEvent.song(SongRecord.default(key, config))
                    continue
                try:
                    record = await asyncio.wait_for(
                        fetch_rendered_song(session, key, config),
                        timeout=config.item_timeout_s,
                    )
                except Exception as e:
                    if not session.is_open:
                        raise
                    logger.info(f"[STREAM] {key}: error - {type(e).__name__}: {e}")
                    record = SongRecord.default(key, config)
                emitted += 1
                yield StreamEvent.song(record)
    except Exception as e:
        logger.error(f"[STREAM] session error after {emitted}/{len(ordered)} songs: {e}")
        yield StreamEvent.failed(str(e) or type(e).__name__)
        return
    logger.info(f"[STREAM] done, {emitted} songs")
    yield StreamEvent.done(emitted)


async def fetch_rendered_artists(
    identifiers: Iterable[str],
    config: ExtractorConfig | None = None,
    session_factory: Callable[[ExtractorConfig], object] = open_session,
) -> Dict[str, str]:
    """Artist attribution only, non-streaming: identifier -> artist (sentinel when unresolved)."""
    config = config or load_config()
    keys = _distinct(identifiers)
    out: Dict[str, str] = {k: config.unknown_artist for k in keys}
    async for event in stream_fetch(keys, config, session_factory):
        if event.kind is StreamEventKind.SONG and event.record is not None:
            out[event.identifier] = event.record.artist
        elif event.kind is StreamEventKind.ERROR:
            logger.warning(f"[STREAM] artist fetch ended early: {event.error}")
    return out
