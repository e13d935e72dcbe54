"""
正規化ヘルパー: 識別子 (UUID) の抽出・正規化と HTML エンティティのデコード。
"""
from __future__ import annotations

import html as _html
import re
from typing import Iterable, List, Optional

from lib.suno.errors import InvalidReference

IDENTIFIER_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_IDENTIFIER_RE = re.compile(IDENTIFIER_PATTERN, re.IGNORECASE)
_IDENTIFIER_FULL_RE = re.compile(rf"^{IDENTIFIER_PATTERN}$", re.IGNORECASE)
# host must start at a boundary (no "notsuno.com") and the id must end where the UUID ends
_PLAYLIST_URL_RE = re.compile(
    rf"(?:^|//|[^\w.-])(?:www\.)?suno\.com/playlist/({IDENTIFIER_PATTERN})(?![\w-])", re.IGNORECASE
)
_SONG_PATH_RE = re.compile(rf"/song/({IDENTIFIER_PATTERN})", re.IGNORECASE)
_HANDLE_RE = re.compile(r"^@?([A-Za-z0-9_]+)$")


def normalize_identifier(value: str) -> str:
    """Lowercase and trim. Idempotent."""
    return (value or "").strip().lower()


def is_identifier(value: str) -> bool:
    return bool(_IDENTIFIER_FULL_RE.match((value or "").strip()))


def require_identifier(value: str) -> str:
    if not is_identifier(value):
        raise InvalidReference(f"Not a valid song/playlist identifier: {value!r}")
    return normalize_identifier(value)


def extract_playlist_id(ref: str) -> str:
    """Extract a playlist identifier from a playlist URL or a bare identifier.

    Supports:
    - https://suno.com/playlist/<id> (with or without scheme, query, trailing path)
    - raw 36-character identifier

    Raises InvalidReference for anything else. No I/O happens here.
    """
    s = (ref or "").strip()
    if s.startswith("<") and s.endswith(">"):
        s = s[1:-1].strip()
    s = s.strip('\'"')
    if not s:
        raise InvalidReference("Empty playlist URL or identifier")

    m = _PLAYLIST_URL_RE.search(s)
    if m:
        return normalize_identifier(m.group(1))
    if is_identifier(s):
        return normalize_identifier(s)
    raise InvalidReference(f"Invalid playlist URL: {s}")


def song_id_from_href(href: str) -> Optional[str]:
    m = _SONG_PATH_RE.search(href or "")
    return normalize_identifier(m.group(1)) if m else None


def normalize_handle(value: str) -> str:
    m = _HANDLE_RE.match((value or "").strip())
    if not m:
        raise InvalidReference(f"Invalid user handle: {value!r}")
    return m.group(1)


def dedupe_identifiers(values: Iterable[str], exclude: Optional[str] = None) -> List[str]:
    """Case-insensitive de-duplication keeping first-seen order."""
    excluded = normalize_identifier(exclude) if exclude else None
    seen: set[str] = set()
    out: List[str] = []
    for v in values:
        key = normalize_identifier(v)
        if not key or key == excluded or key in seen:
            continue
        seen.add(key)
        out.append(key)
    return out


def scan_identifiers(text: str, exclude: Optional[str] = None) -> List[str]:
    """Every distinct identifier-shaped substring of text, in order of appearance."""
    return dedupe_identifiers(_IDENTIFIER_RE.findall(text or ""), exclude=exclude)


def decode_html_entities(value: Optional[str]) -> Optional[str]:
    """
    Decode numeric, hex and named entities.
    Repeats until nothing changes, so double-escaped text like ``&amp;#39;`` ends as ``'``.
    Already-decoded text comes back unchanged. A pass that changes anything also
    shortens the string, so the loop always ends.
    """
    if not value:
        return value
    s = value
    while True:
        decoded = _html.unescape(s)
        if decoded == s:
            return s
        s = decoded


def clean_text(value: object, collapse: bool = True) -> Optional[str]:
    """Decode entities and trim; non-strings and blanks become None.

    collapse=False keeps line breaks (prompts and lyrics use them).
    """
    if not isinstance(value, str):
        return None
    s = decode_html_entities(value) or ""
    if collapse:
        s = re.sub(r"\s+", " ", s)
    s = s.strip()
    return s or None
