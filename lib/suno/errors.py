"""
Error taxonomy for the extraction pipeline.

Only request-level structural errors (InvalidReference, NavigationTimeout on a
playlist) are meant to reach the HTTP boundary. Field-level misses are not
exceptions at all: a heuristic that finds nothing returns None.
"""
from __future__ import annotations


class SunoExtractionError(Exception):
    """Base error; carries optional diagnostics meta for the boundary layer."""

    kind = "extraction_error"

    def __init__(self, message: str, meta: dict | None = None):
        super().__init__(message)
        self.meta = meta or {}


class InvalidReference(SunoExtractionError, ValueError):
    kind = "invalid_reference"


class NavigationTimeout(SunoExtractionError, TimeoutError):
    kind = "navigation_timeout"


class RenderError(SunoExtractionError):
    """The rendering engine failed for a reason other than a deadline."""

    kind = "render_error"


class HttpError(SunoExtractionError):
    kind = "http_error"

    def __init__(self, status: int, url: str | None = None):
        super().__init__(f"HTTP {status}" + (f" for {url}" if url else ""), meta={"status": status, "url": url})
        self.status = status


class FetchTimeout(SunoExtractionError, TimeoutError):
    kind = "fetch_timeout"


class FetchError(SunoExtractionError):
    kind = "fetch_error"
