import asyncio
import unittest

import httpx

from lib.suno.config import ExtractorConfig
from lib.suno.errors import NavigationTimeout, RenderError
from lib.suno.fetcher import StaticPageFetcher
from lib.suno.models import StreamEventKind
from lib.suno.orchestrator import batch_fetch, fetch_rendered_artists, stream_fetch

from fakes import FakePage, FakeSession, song_page

A = "aaaaaaaa-1111-2222-3333-444444444444"
B = "bbbbbbbb-1111-2222-3333-444444444444"
C = "cccccccc-1111-2222-3333-444444444444"

CONFIG = ExtractorConfig(base_url="https://suno.test", settle_ms=0, batch_concurrency=2)

OG_PAGE = """<html><head>
<meta property="og:title" content="{title} | Suno">
<meta property="og:description" content="Listen to {title} by @{artist} on Suno">
</head><body></body></html>"""


def _handler(request: httpx.Request) -> httpx.Response:
    ident = request.url.path.rsplit("/", 1)[-1]
    if ident == A:
        return httpx.Response(200, text=OG_PAGE.format(title="First", artist="alpha"))
    if ident == B:
        return httpx.Response(500, text="boom")
    raise httpx.ReadTimeout("slow upstream", request=request)


def _fetcher() -> StaticPageFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    return StaticPageFetcher(CONFIG, client=client)


async def _collect(agen):
    return [event async for event in agen]


class BatchFetchTests(unittest.IsolatedAsyncioTestCase):
    async def test_one_entry_per_distinct_identifier(self):
        async with _fetcher() as fetcher:
            records = await batch_fetch([A, B, C, A.upper(), ""], CONFIG, fetcher)
        self.assertEqual(set(records), {A, B, C})
        self.assertEqual(records[A].title, "First")
        self.assertEqual(records[A].artist, "alpha")

    async def test_failed_fetches_fall_back_to_defaults(self):
        async with _fetcher() as fetcher:
            records = await batch_fetch([B, C], CONFIG, fetcher)
        for ident in (B, C):
            self.assertIsNone(records[ident].title)
            self.assertEqual(records[ident].artist, CONFIG.unknown_artist)
            self.assertEqual(records[ident].cover_url, CONFIG.cover_url_for(ident))

    async def test_malformed_identifiers_never_reach_the_network(self):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return _handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with StaticPageFetcher(CONFIG, client=client) as fetcher:
            records = await batch_fetch(["not an id", "../../api/x", A], CONFIG, fetcher)
        await client.aclose()

        self.assertEqual(requested, [f"https://suno.test/song/{A}"])
        self.assertEqual(list(records), ["not an id", "../../api/x", A])
        self.assertEqual(records["../../api/x"].artist, CONFIG.unknown_artist)
        self.assertIsNone(records["not an id"].title)

    async def test_result_keeps_input_order(self):
        async def handler(request):
            ident = request.url.path.rsplit("/", 1)[-1]
            if ident == A:
                await asyncio.sleep(0.05)
            return httpx.Response(200, text=OG_PAGE.format(title=ident[:4], artist="x"))

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with StaticPageFetcher(CONFIG, client=client) as fetcher:
            records = await batch_fetch([A, B, C], CONFIG, fetcher)
        await client.aclose()
        self.assertEqual(list(records), [A, B, C])

    async def test_empty_input(self):
        async with _fetcher() as fetcher:
            self.assertEqual(await batch_fetch([], CONFIG, fetcher), {})


class _CrashingPage(FakePage):
    def __init__(self, session):
        super().__init__()
        self.session = session

    async def navigate(self, url, strategy="domReady", timeout_ms=None):
        self.session.crashed = True
        raise RenderError("Target closed")


class StreamFetchTests(unittest.IsolatedAsyncioTestCase):
    async def test_song_events_in_input_order_then_done(self):
        session = FakeSession([song_page("one"), song_page("two"), song_page("three")])
        events = await _collect(stream_fetch([A, B, C], CONFIG, lambda config: session))
        kinds = [e.kind for e in events]
        self.assertEqual(kinds, [StreamEventKind.SONG] * 3 + [StreamEventKind.DONE])
        self.assertEqual([e.identifier for e in events[:3]], [A, B, C])
        self.assertEqual([e.record.artist for e in events[:3]], ["one", "two", "three"])
        self.assertEqual(events[-1].payload(), {"done": True, "count": 3})
        self.assertTrue(session.closed)

    async def test_per_song_failures_still_emit_a_song_event(self):
        config = CONFIG.with_overrides(item_timeout_s=0.05)
        pages = [
            song_page("one"),
            FakePage(nav_error=NavigationTimeout("Timed out navigating")),
            FakePage(nav_delay=1.0),
        ]
        session = FakeSession(pages)
        events = await _collect(stream_fetch([A, B, C], config, lambda config: session))
        self.assertEqual(len(events), 4)
        self.assertEqual(events[1].identifier, B)
        self.assertEqual(events[1].record.artist, CONFIG.unknown_artist)
        self.assertEqual(events[2].identifier, C)
        self.assertEqual(events[2].record.artist, CONFIG.unknown_artist)
        self.assertIs(events[-1].kind, StreamEventKind.DONE)
        self.assertTrue(all(p.closed for p in pages))

    async def test_malformed_identifiers_are_not_rendered(self):
        session = FakeSession([song_page("one")])
        events = await _collect(stream_fetch(["../../api/x", A], CONFIG, lambda config: session))
        self.assertEqual([e.kind for e in events], [StreamEventKind.SONG] * 2 + [StreamEventKind.DONE])
        self.assertEqual(events[0].identifier, "../../api/x")
        self.assertEqual(events[0].record.artist, CONFIG.unknown_artist)
        self.assertEqual(events[1].record.artist, "one")
        self.assertEqual(len(session.handed_out), 1)

    async def test_duplicates_are_rendered_once(self):
        session = FakeSession([song_page("one")])
        events = await _collect(stream_fetch([A, A.upper()], CONFIG, lambda config: session))
        self.assertEqual([e.kind for e in events], [StreamEventKind.SONG, StreamEventKind.DONE])

    async def test_launch_failure_is_a_single_error_event(self):
        session = FakeSession([], fail_on_open=RenderError("Failed to launch browser"))
        events = await _collect(stream_fetch([A, B], CONFIG, lambda config: session))
        self.assertEqual(len(events), 1)
        self.assertIs(events[0].kind, StreamEventKind.ERROR)
        self.assertIn("launch", events[0].payload()["error"])

    async def test_crash_mid_stream_ends_with_error(self):
        session = FakeSession([])
        session.pages = [song_page("one"), _CrashingPage(session), song_page("never")]
        events = await _collect(stream_fetch([A, B, C], CONFIG, lambda config: session))
        self.assertEqual([e.kind for e in events], [StreamEventKind.SONG, StreamEventKind.ERROR])
        self.assertTrue(session.closed)

    async def test_consumer_cancellation_closes_session(self):
        session = FakeSession([song_page("one"), song_page("two")])
        agen = stream_fetch([A, B], CONFIG, lambda config: session)
        first = await agen.__anext__()
        self.assertEqual(first.identifier, A)
        await agen.aclose()
        self.assertTrue(session.closed)


class RenderedArtistsTests(unittest.IsolatedAsyncioTestCase):
    async def test_artist_map_covers_every_identifier(self):
        session = FakeSession([song_page("one"), FakePage(nav_error=NavigationTimeout("t"))])
        artists = await fetch_rendered_artists([A, B], CONFIG, lambda config: session)
        self.assertEqual(artists, {A: "one", B: CONFIG.unknown_artist})

    async def test_session_failure_leaves_sentinels(self):
        session = FakeSession([], fail_on_open=RenderError("no browser"))
        artists = await fetch_rendered_artists(iter([A, B]), CONFIG, lambda config: session)
        self.assertEqual(artists, {A: CONFIG.unknown_artist, B: CONFIG.unknown_artist})


if __name__ == "__main__":
    unittest.main()
