from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

# .env は任意（ローカル開発用）。環境変数が既にあればそちらを優先
load_dotenv(Path(__file__).resolve().parent / ".env", override=False)

from fastapi import (
    FastAPI,
    HTTPException,
    Query,
    Request,
)
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from pydantic import BaseModel
import logging
import time

import core
from core import MAX_IDENTIFIERS_PER_REQUEST, parse_identifier_list
from lib.cache_manager import (
    PLAYLIST_CACHE_TTL_S,
    build_playlist_cache_key,
    get_playlist_cache,
)
from lib.suno.errors import InvalidReference, NavigationTimeout, SunoExtractionError
from lib.suno.normalizer import extract_playlist_id

# Basic logging configuration to ensure logger outputs appear in the terminal
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn.error")
logger.setLevel(logging.INFO)


# =========================
# Pydantic models
# =========================

class SongModel(BaseModel):
    identifier: str
    title: Optional[str] = None
    artist: str
    cover_url: str
    style: Optional[str] = None
    description: Optional[str] = None
    provenance: Optional[Dict[str, str]] = None


class PlaylistMemberModel(BaseModel):
    identifier: str
    title: str = ""
    artist: str = ""


class PlaylistModel(BaseModel):
    identifier: str
    title: str
    description: Optional[str] = None
    creator_handle: Optional[str] = None
    member_identifiers: List[str]
    members: List[PlaylistMemberModel] = []
    discovery: str = "anchors"


class PlaylistMetaModel(BaseModel):
    model_config = {"extra": "allow"}

    cache_hit: Optional[bool] = None
    cache_ttl_s: Optional[int] = None
    refresh: Optional[int] = None
    fetch_ms: Optional[float] = None
    total_api_ms: Optional[float] = None


class PlaylistResponse(BaseModel):
    playlist: PlaylistModel
    meta: Optional[PlaylistMetaModel] = None


class BatchBody(BaseModel):
    identifiers: List[str]


class PlaylistSummaryModel(BaseModel):
    identifier: str
    url: str
    title: str
    cover_url: Optional[str] = None
    song_count: Optional[int] = None


class UserPlaylistsResponse(BaseModel):
    handle: str
    playlists: List[PlaylistSummaryModel]


# =========================
# FastAPI app & CORS
# =========================

app = FastAPI(
    title="Suno Playlist Explorer",
    version="1.0.0",
)

class StreamAwareGZipMiddleware(GZipMiddleware):
    """GZip everything except SSE routes; a gzip buffer would hold events back until the end."""

    async def __call__(self, scope, receive, send):
        if scope["type"] == "http" and scope["path"].endswith("/stream"):
            await self.app(scope, receive, send)
            return
        await super().__call__(scope, receive, send)


app.add_middleware(StreamAwareGZipMiddleware, minimum_size=1000)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method in ("POST", "PUT", "PATCH"):
            content_length = request.headers.get("content-length")
            if content_length and int(content_length) > 1 * 1024 * 1024:  # 1MB ceiling
                logger.warning(f"[RequestSizeLimit] Rejected oversized request: {content_length} bytes from {request.client}")
                return JSONResponse(
                    status_code=413,
                    content={"detail": "Request body too large (max 1MB)"}
                )
        return await call_next(request)


app.add_middleware(RequestSizeLimitMiddleware)

default_origins = [
    "http://localhost:3000",
    "http://localhost:8000",
]

# 環境変数 ALLOWED_ORIGINS があればそれを優先（カンマ区切り）
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",") if o.strip()]
else:
    origins = default_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _log_startup():
    logger.info("suno-explorer: startup event triggered")


# =========================
# Health check
# =========================

@app.get("/health", tags=["system"])
def health() -> Dict[str, Any]:
    return {
        "ok": True,
        "status": "ok",
        "build_commit": os.getenv("RENDER_GIT_COMMIT", "local")[:7],
    }


@app.get("/", tags=["system"])
def root() -> Dict[str, Any]:
    return {"ok": True, "status": "ok"}


# =========================
# Core helpers
# =========================

def _sanitize_url(raw: str) -> str:
    """
    Basic server-side URL sanitization: trim whitespace, strip surrounding
    angle brackets and surrounding single/double quotes.
    """
    if not raw:
        return raw
    s = raw.strip()
    if s.startswith('<') and s.endswith('>'):
        s = s[1:-1].strip()
    s = s.strip('\'"')
    return s


def _error_detail(e: SunoExtractionError) -> Dict[str, Any]:
    return {"error": str(e), "kind": e.kind, "meta": e.meta}


def _raise_for_extraction_error(e: Exception, context: str) -> None:
    """Structural errors -> HTTP status. Anything else is a 502 from the upstream site/browser."""
    if isinstance(e, InvalidReference):
        raise HTTPException(status_code=422, detail=_error_detail(e))
    if isinstance(e, NavigationTimeout):
        raise HTTPException(status_code=504, detail=_error_detail(e))
    if isinstance(e, SunoExtractionError):
        raise HTTPException(status_code=502, detail=_error_detail(e))
    logger.exception(f"[{context}] unexpected error: {e}")
    raise HTTPException(status_code=502, detail={"error": str(e), "kind": "unexpected", "meta": {}})


def _limit_identifiers(ids: List[str]) -> List[str]:
    if len(ids) > MAX_IDENTIFIERS_PER_REQUEST:
        raise HTTPException(
            status_code=413,
            detail=f"Too many identifiers ({len(ids)}); max {MAX_IDENTIFIERS_PER_REQUEST} per request",
        )
    return ids


# =========================
# Endpoints
# =========================

@app.get("/api/playlist", response_model=PlaylistResponse)
async def get_playlist(
    url: str = Query(..., description="Suno playlist URL or playlist identifier"),
    refresh: Optional[int] = Query(None, description="Bypass cache when set to 1"),
):
    """プレイリストのメンバー曲 ID とメタ情報（レンダリング経由）。"""
    t0_total = time.time()
    clean_url = _sanitize_url(url)
    try:
        playlist_id = extract_playlist_id(clean_url)
    except InvalidReference as e:
        logger.info(f"[api/playlist] invalid reference raw_url={url}")
        _raise_for_extraction_error(e, "api/playlist")

    cache = get_playlist_cache()
    cache_key = build_playlist_cache_key(playlist_id)
    bypass = (refresh == 1)
    cached = None if bypass else cache.get(cache_key)
    cache_hit = cached is not None

    if cached is not None:
        result = cached
    else:
        try:
            result = await core.fetch_playlist(playlist_id)
        except Exception as e:
            logger.error(f"[api/playlist] error for raw_url={url} playlist_id={playlist_id}: {e}")
            _raise_for_extraction_error(e, "api/playlist")
        # Only cache non-empty results; an empty playlist is more often a half-loaded page
        if result["playlist"]["member_identifiers"]:
            cache[cache_key] = result

    perf = result.get("perf", {})
    total_ms = (time.time() - t0_total) * 1000
    logger.info(
        f"[PERF] playlist={playlist_id} cache_hit={'true' if cache_hit else 'false'} "
        f"cache_ttl_s={PLAYLIST_CACHE_TTL_S} cache_size={len(cache)} refresh={'1' if bypass else '0'} "
        f"fetch_ms={perf.get('fetch_ms', 0):.1f} total_api_ms={total_ms:.1f} songs={len(result['playlist']['member_identifiers'])}"
    )
    return {
        "playlist": result["playlist"],
        "meta": {
            "cache_hit": cache_hit,
            "cache_ttl_s": PLAYLIST_CACHE_TTL_S,
            "refresh": 1 if bypass else 0,
            "fetch_ms": float(perf.get("fetch_ms", 0) or 0),
            "total_api_ms": float(total_ms),
        },
    }


@app.post("/api/songs/batch", response_model=Dict[str, SongModel])
async def songs_batch(body: BatchBody):
    """静的 HTML から高速に取得。1 曲の失敗は既定値で埋め、全体はエラーにしない。"""
    ids = _limit_identifiers(parse_identifier_list(body.identifiers))
    logger.info(f"[api/songs/batch] fetching {len(ids)} songs")
    return await core.fetch_songs_batch(ids)


@app.get("/api/songs/stream")
async def songs_stream(
    ids: str = Query(..., description="Comma separated song identifiers"),
):
    """
    レンダリング経由の正確な値を 1 曲ずつ SSE で配信。
    event: song (曲ごと) → event: done（最後に 1 回）/ event: error（セッション異常時）
    """
    id_list = _limit_identifiers(parse_identifier_list(ids))
    if not id_list:
        raise HTTPException(status_code=400, detail="Missing ids parameter")
    logger.info(f"[api/songs/stream] streaming {len(id_list)} songs")
    return StreamingResponse(
        core.stream_songs_sse(id_list),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.get("/api/songs/{identifier}", response_model=SongModel)
async def get_song(identifier: str):
    try:
        return await core.fetch_song(identifier)
    except InvalidReference as e:
        _raise_for_extraction_error(e, "api/songs")


@app.get("/api/users/{handle}/playlists", response_model=UserPlaylistsResponse)
async def user_playlists(handle: str):
    try:
        result = await core.fetch_user_playlists(handle)
    except Exception as e:
        logger.error(f"[api/users/playlists] error for handle={handle}: {e}")
        _raise_for_extraction_error(e, "api/users/playlists")
    logger.info(f"[PERF] user_playlists handle={result['handle']} count={len(result['playlists'])} fetch_ms={result['perf']['fetch_ms']}")
    return result


# =========================
# Local dev entrypoint
# =========================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
