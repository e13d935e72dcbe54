"""
Static page fetcher: plain GET of a page's HTML, no rendering engine.

No retries here; the batch orchestrator decides what a failure means.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from lib.suno.config import ExtractorConfig, load_config
from lib.suno.errors import FetchError, FetchTimeout, HttpError

logger = logging.getLogger(__name__)


class StaticPageFetcher:
    """Thin wrapper over httpx.AsyncClient.

    Pass ``client`` to share one connection pool across many fetches (the batch
    path does this); a fetcher that created its own client closes it in
    ``aclose()``.
    """

    def __init__(self, config: ExtractorConfig | None = None, client: httpx.AsyncClient | None = None):
        self.config = config or load_config()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(self.config.http_timeout_s),
            headers=self._default_headers(),
        )

    def _default_headers(self) -> dict:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def __aenter__(self) -> "StaticPageFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str, timeout_s: Optional[float], headers: Optional[dict]) -> httpx.Response:
        timeout = httpx.Timeout(timeout_s if timeout_s is not None else self.config.http_timeout_s)
        try:
            resp = await self._client.get(url, headers=headers, timeout=timeout)
        except httpx.TimeoutException as e:
            raise FetchTimeout(f"Timed out after {timeout.read}s fetching {url}", meta={"url": url}) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to fetch {url}: {e}", meta={"url": url}) from e
        if not resp.is_success:
            raise HttpError(resp.status_code, url)
        return resp

    async def fetch(self, url: str, timeout_s: Optional[float] = None) -> str:
        resp = await self._get(url, timeout_s, None)
        logger.debug(f"[STATIC] GET {url} -> {resp.status_code} ({len(resp.text)} chars)")
        return resp.text

    async def fetch_json(self, url: str, timeout_s: Optional[float] = None) -> Any:
        resp = await self._get(url, timeout_s, {"Accept": "application/json"})
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(f"Response from {url} is not JSON: {e}", meta={"url": url}) from e
