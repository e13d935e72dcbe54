"""Centralized cache utilities for the serving layer (TTLCache settings & key builders).

The extraction core never caches; only app.py consults these.
"""
from __future__ import annotations

import os
from cachetools import TTLCache

_ENV = os.getenv("ENV", "prod").lower()

# Playlist enumeration cache settings
PLAYLIST_CACHE_VERSION = os.getenv("PLAYLIST_CACHE_VERSION", "v1")
PLAYLIST_CACHE_MAXSIZE = int(os.getenv("PLAYLIST_CACHE_MAXSIZE", "128"))
PLAYLIST_CACHE_TTL_S = int(os.getenv("PLAYLIST_CACHE_TTL_S", "300" if _ENV == "dev" else "1800"))

# Lazy-initialized caches
_playlist_cache: TTLCache | None = None


def get_playlist_cache() -> TTLCache:
    global _playlist_cache
    if _playlist_cache is None:
        _playlist_cache = TTLCache(maxsize=PLAYLIST_CACHE_MAXSIZE, ttl=PLAYLIST_CACHE_TTL_S)
    return _playlist_cache


def build_playlist_cache_key(playlist_id: str) -> str:
    return f"pl:{PLAYLIST_CACHE_VERSION}:{playlist_id.lower()}"
