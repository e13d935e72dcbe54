import unittest
from unittest import mock

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from lib.suno.config import ExtractorConfig
from lib.suno.errors import NavigationTimeout, RenderError
from playwright_pool import RenderedPage, RenderedPageSession, _launch_args

CONFIG = ExtractorConfig(headless=True, executable_path=None, container_mode=False, nav_timeout_ms=1234)


def _browser(context):
    browser = mock.MagicMock()
    browser.is_connected.return_value = True
    browser.new_context = mock.AsyncMock(return_value=context)
    browser.close = mock.AsyncMock()
    return browser


def _driver(browser=None, launch_error=None):
    pw = mock.MagicMock()
    pw.chromium.launch = mock.AsyncMock(return_value=browser, side_effect=launch_error)
    pw.stop = mock.AsyncMock()
    starter = mock.MagicMock()
    starter.start = mock.AsyncMock(return_value=pw)
    return pw, starter


def _context(page):
    context = mock.MagicMock()
    context.new_page = mock.AsyncMock(return_value=page)
    context.close = mock.AsyncMock()
    return context


class RenderedPageTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.raw_page = mock.AsyncMock()
        self.context = mock.AsyncMock()
        self.page = RenderedPage(self.context, self.raw_page, CONFIG)

    async def test_navigate_maps_strategy_and_default_timeout(self):
        await self.page.navigate("https://suno.test/song/x", strategy="networkIdle")
        self.raw_page.goto.assert_awaited_once_with(
            "https://suno.test/song/x", wait_until="networkidle", timeout=1234
        )

    async def test_playwright_timeout_becomes_navigation_timeout(self):
        self.raw_page.goto.side_effect = PlaywrightTimeoutError("Timeout 500ms exceeded")
        with self.assertRaises(NavigationTimeout) as ctx:
            await self.page.navigate("https://suno.test/playlist/x", strategy="domReady", timeout_ms=500)
        self.assertEqual(ctx.exception.meta["timeout_ms"], 500)
        self.assertEqual(ctx.exception.meta["strategy"], "domReady")

    async def test_other_playwright_errors_become_render_error(self):
        self.raw_page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")
        with self.assertRaises(RenderError):
            await self.page.navigate("https://suno.test/song/x")

    async def test_unknown_strategy_is_rejected_before_navigation(self):
        with self.assertRaises(ValueError):
            await self.page.navigate("https://suno.test/song/x", strategy="load")
        self.raw_page.goto.assert_not_awaited()

    async def test_wait_for_selector_reports_miss_as_false(self):
        self.assertTrue(await self.page.wait_for_selector("a", timeout_ms=10))
        self.raw_page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 10ms exceeded")
        self.assertFalse(await self.page.wait_for_selector("a", timeout_ms=10))

    async def test_evaluate_passes_arguments(self):
        await self.page.evaluate("() => 1")
        await self.page.evaluate("(a) => a", {"x": 1})
        await self.page.evaluate("([a, b]) => a + b", 1, 2)
        self.assertEqual(self.raw_page.evaluate.await_args_list, [
            mock.call("() => 1"),
            mock.call("(a) => a", {"x": 1}),
            mock.call("([a, b]) => a + b", [1, 2]),
        ])

    async def test_close_is_idempotent(self):
        await self.page.close()
        await self.page.close()
        self.raw_page.close.assert_awaited_once()
        self.context.close.assert_awaited_once()

    async def test_context_closed_even_when_page_close_fails(self):
        self.raw_page.close.side_effect = PlaywrightError("Target closed")
        with self.assertRaises(PlaywrightError):
            await self.page.close()
        self.context.close.assert_awaited_once()


class RenderedPageSessionTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.raw_page = mock.AsyncMock()
        self.context = _context(self.raw_page)
        self.browser = _browser(self.context)
        self.pw, starter = _driver(self.browser)
        patcher = mock.patch("playwright_pool.async_playwright", return_value=starter)
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_open_launches_with_configured_flags(self):
        async with RenderedPageSession(CONFIG) as session:
            self.assertTrue(session.is_open)
        kwargs = self.pw.chromium.launch.await_args.kwargs
        self.assertTrue(kwargs["headless"])
        self.assertEqual(kwargs["args"], _launch_args(CONFIG))
        self.assertNotIn("--no-sandbox", kwargs["args"])

    async def test_launch_failure_stops_driver(self):
        pw, starter = _driver(launch_error=RuntimeError("Executable doesn't exist"))
        with mock.patch("playwright_pool.async_playwright", return_value=starter):
            session = RenderedPageSession(CONFIG)
            with self.assertRaises(RenderError):
                async with session:
                    self.fail("body must not run")
        pw.stop.assert_awaited_once()
        self.assertFalse(session.is_open)

    async def test_page_scope_closes_page_when_body_raises(self):
        async with RenderedPageSession(CONFIG) as session:
            with self.assertRaises(ValueError):
                async with session.page():
                    raise ValueError("extraction blew up")
        self.raw_page.close.assert_awaited_once()
        self.context.close.assert_awaited_once()

    async def test_context_closed_when_new_page_fails(self):
        self.context.new_page.side_effect = PlaywrightError("Browser has been closed")
        async with RenderedPageSession(CONFIG) as session:
            with self.assertRaises(PlaywrightError):
                await session.new_page()
        self.context.close.assert_awaited_once()

    async def test_close_is_idempotent(self):
        session = RenderedPageSession(CONFIG)
        await session.open()
        await session.close()
        await session.close()
        self.browser.close.assert_awaited_once()
        self.pw.stop.assert_awaited_once()
        self.assertFalse(session.is_open)

    async def test_disconnected_browser_is_not_open(self):
        async with RenderedPageSession(CONFIG) as session:
            self.browser.is_connected.return_value = False
            self.assertFalse(session.is_open)

    async def test_new_page_requires_open_session(self):
        with self.assertRaises(RenderError):
            await RenderedPageSession(CONFIG).new_page()


if __name__ == "__main__":
    unittest.main()
