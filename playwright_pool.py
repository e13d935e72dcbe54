import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from lib.suno.config import ExtractorConfig, load_config
from lib.suno.errors import NavigationTimeout, RenderError

logger = logging.getLogger(__name__)

# domReady / networkIdle -> Playwright wait_until
NAV_STRATEGIES = {
    "domReady": "domcontentloaded",
    "networkIdle": "networkidle",
}


def _launch_args(config: ExtractorConfig) -> list[str]:
    args: list[str] = [
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-software-rasterizer",
    ]
    # Container 対策: sandbox を無効化（ローカルでは逆にクラッシュすることがある）
    if config.container_mode and sys.platform.startswith("linux"):
        args += ["--no-sandbox", "--disable-setuid-sandbox", "--no-zygote"]
    return args


class RenderedPage:
    """One page in its own browser context; closing the page closes the context."""

    def __init__(self, context: BrowserContext, page: Page, config: ExtractorConfig):
        self._context = context
        self._page = page
        self.config = config
        self._closed = False

    async def navigate(self, url: str, strategy: str = "domReady", timeout_ms: Optional[int] = None) -> None:
        wait_until = NAV_STRATEGIES.get(strategy)
        if wait_until is None:
            raise ValueError(f"Unknown navigation strategy: {strategy}")
        timeout = timeout_ms if timeout_ms is not None else self.config.nav_timeout_ms
        try:
            await self._page.goto(url, wait_until=wait_until, timeout=timeout)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(
                f"Navigation to {url} exceeded {timeout}ms ({strategy})",
                meta={"url": url, "strategy": strategy, "timeout_ms": timeout},
            ) from e
        except PlaywrightError as e:
            raise RenderError(f"Navigation to {url} failed: {e}", meta={"url": url}) from e

    async def evaluate(self, script: str, *args: Any) -> Any:
        """Run a JS function against the live DOM. Several args arrive as one array."""
        if not args:
            return await self._page.evaluate(script)
        if len(args) == 1:
            return await self._page.evaluate(script, args[0])
        return await self._page.evaluate(script, list(args))

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        """False instead of an exception when the selector never shows up."""
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def wait(self, ms: int) -> None:
        await self._page.wait_for_timeout(ms)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._page.close()
        finally:
            await self._context.close()


class RenderedPageSession:
    """
    One Chromium instance. Use as ``async with RenderedPageSession(config) as session``;
    the browser and the Playwright driver are released on every exit path.
    """

    def __init__(self, config: ExtractorConfig | None = None):
        self.config = config or load_config()
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """False once closed, never opened, or the browser process went away."""
        return self._browser is not None and self._browser.is_connected()

    async def open(self) -> "RenderedPageSession":
        async with self._lock:
            if self._browser is not None:
                return self
            try:
                self._pw = await async_playwright().start()
                self._browser = await self._pw.chromium.launch(
                    headless=self.config.headless,
                    executable_path=self.config.executable_path,
                    args=_launch_args(self.config),
                    ignore_default_args=["--enable-crashpad"],
                )
            except Exception as e:
                logger.error(f"[PW_SESSION] launch failed: {e}")
                await self._teardown()
                raise RenderError(f"Failed to launch browser: {e}") from e
            logger.info("[PW_SESSION] launch browser")
            return self

    async def new_page(self) -> RenderedPage:
        if self._browser is None:
            raise RenderError("Session is not open")
        context = await self._browser.new_context(
            user_agent=self.config.user_agent,
            viewport={"width": 1920, "height": 1080},
        )
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        return RenderedPage(context, page, self.config)

    @asynccontextmanager
    async def page(self) -> AsyncIterator[RenderedPage]:
        page = await self.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except Exception as e:
                # a crashed browser can't close its pages; the session teardown still runs
                logger.warning(f"[PW_SESSION] page close failed: {e}")

    async def _teardown(self) -> None:
        browser, pw = self._browser, self._pw
        self._browser = None
        self._pw = None
        if browser is not None:
            try:
                await browser.close()
            finally:
                logger.info("[PW_SESSION] close browser")
                if pw is not None:
                    await pw.stop()
        elif pw is not None:
            await pw.stop()

    async def close(self) -> None:
        async with self._lock:
            await self._teardown()

    async def __aenter__(self) -> "RenderedPageSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def open_session(config: ExtractorConfig | None = None) -> RenderedPageSession:
    """Session factory; the orchestrators take this as a parameter so tests can swap it."""
    return RenderedPageSession(config)
