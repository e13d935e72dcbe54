#!/usr/bin/env python3
"""
Suno のプレイリスト / 曲メタデータを取得して、
- プレイリスト基本情報とメンバー曲 ID（レンダリング経由）
- 各曲の情報（タイトル / アーティスト / カバー / スタイル / 説明）
  - fast pass: 静的 HTML 解析（並列）
  - slow pass: レンダリング DOM 解析（1 ブラウザで逐次、SSE で逐次配信）

を Python 辞書で返すコアモジュール。HTTP 層（app.py）はここだけを呼ぶ。
"""

from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import Any, AsyncIterator, Dict, Iterable, List

from lib.suno.config import ExtractorConfig, load_config
from lib.suno.models import StreamEvent
from lib.suno.normalizer import require_identifier
from lib.suno.orchestrator import batch_fetch, stream_fetch
from lib.suno.playlist import enumerate_playlist
from lib.suno.profiles import fetch_user_playlists as _fetch_user_playlists

logger = logging.getLogger(__name__)

# Longest id list accepted by one batch/stream call
MAX_IDENTIFIERS_PER_REQUEST = 500


def _ms(t0: float) -> int:
    return int((perf_counter() - t0) * 1000)


def parse_identifier_list(raw: str | Iterable[str] | None) -> List[str]:
    """Comma separated string or list -> trimmed, non-empty entries (order kept)."""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    return [p.strip() for p in parts if isinstance(p, str) and p.strip()]


async def fetch_playlist(url_or_id: str, config: ExtractorConfig | None = None) -> Dict[str, Any]:
    """Playlist reference -> {"playlist": {...}, "perf": {...}}. InvalidReference / NavigationTimeout propagate."""
    config = config or load_config()
    t0 = perf_counter()
    record = await enumerate_playlist(url_or_id, config)
    perf = {"fetch_ms": _ms(t0), "songs_count": len(record.members)}
    return {"playlist": record.to_dict(), "perf": perf}


async def fetch_song(identifier: str, config: ExtractorConfig | None = None) -> Dict[str, Any]:
    """Single song, static tier. A malformed id raises InvalidReference; a failed fetch gives the default record."""
    config = config or load_config()
    ident = require_identifier(identifier)
    records = await batch_fetch([ident], config)
    return records[ident].to_dict(with_provenance=True)


async def fetch_songs_batch(identifiers: Iterable[str], config: ExtractorConfig | None = None) -> Dict[str, Dict[str, Any]]:
    """identifier -> song dict, one entry per distinct input identifier. Never raises for per-song failures."""
    config = config or load_config()
    t0 = perf_counter()
    records = await batch_fetch(identifiers, config)
    logger.info(f"[PERF] batch songs={len(records)} total_ms={_ms(t0)}")
    return {ident: rec.to_dict() for ident, rec in records.items()}


def sse_event(event: str, data: Any) -> str:
    payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    data_lines = "\n".join(f"data: {line}" for line in payload.split("\n"))
    return f"event: {event}\n{data_lines}\n\n"


def stream_event_to_sse(event: StreamEvent) -> str:
    return sse_event(event.kind.value, event.payload())


async def stream_songs_sse(identifiers: Iterable[str], config: ExtractorConfig | None = None) -> AsyncIterator[str]:
    """Rendered-tier results as SSE frames: one `song` frame per id, then `done` (or `error`)."""
    config = config or load_config()
    t0 = perf_counter()
    count = 0
    async for event in stream_fetch(identifiers, config):
        count += 1
        yield stream_event_to_sse(event)
    logger.info(f"[PERF] stream events={count} total_ms={_ms(t0)}")


async def fetch_user_playlists(handle: str, config: ExtractorConfig | None = None) -> Dict[str, Any]:
    config = config or load_config()
    t0 = perf_counter()
    playlists = await _fetch_user_playlists(handle, config)
    return {
        "handle": handle.lstrip("@"),
        "playlists": [p.to_dict() for p in playlists],
        "perf": {"fetch_ms": _ms(t0)},
    }
