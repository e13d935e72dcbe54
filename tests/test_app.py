import json
import unittest
from unittest import mock

from fastapi.testclient import TestClient

import app as app_module
from lib.cache_manager import get_playlist_cache
from lib.suno.config import ExtractorConfig
from lib.suno.errors import NavigationTimeout
from lib.suno.models import SongRecord, StreamEvent

PL = "99999999-aaaa-bbbb-cccc-dddddddddddd"
S1 = "11111111-aaaa-bbbb-cccc-dddddddddddd"
S2 = "22222222-aaaa-bbbb-cccc-dddddddddddd"

CONFIG = ExtractorConfig()


def _playlist_result(members):
    return {
        "playlist": {
            "identifier": PL,
            "title": "Mix",
            "description": None,
            "creator_handle": "someone",
            "member_identifiers": members,
            "members": [{"identifier": m, "title": "", "artist": ""} for m in members],
            "discovery": "anchors",
        },
        "perf": {"fetch_ms": 12, "songs_count": len(members)},
    }


def _parse_sse(text):
    frames = []
    for block in text.strip().split("\n\n"):
        lines = block.split("\n")
        event = lines[0][len("event: "):]
        data = "\n".join(line[len("data: "):] for line in lines[1:])
        frames.append((event, json.loads(data)))
    return frames


class PlaylistEndpointTests(unittest.TestCase):
    def setUp(self):
        get_playlist_cache().clear()
        self.client = TestClient(app_module.app)

    def test_invalid_url_is_422_without_fetching(self):
        fetch = mock.AsyncMock()
        with mock.patch("core.fetch_playlist", fetch):
            resp = self.client.get("/api/playlist", params={"url": "https://example.com/x"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["detail"]["kind"], "invalid_reference")
        fetch.assert_not_called()

    def test_second_call_served_from_cache(self):
        fetch = mock.AsyncMock(return_value=_playlist_result([S1, S2]))
        with mock.patch("core.fetch_playlist", fetch):
            first = self.client.get("/api/playlist", params={"url": f"<https://suno.com/playlist/{PL}>"})
            second = self.client.get("/api/playlist", params={"url": PL.upper()})
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["playlist"]["member_identifiers"], [S1, S2])
        self.assertFalse(first.json()["meta"]["cache_hit"])
        self.assertTrue(second.json()["meta"]["cache_hit"])
        fetch.assert_awaited_once_with(PL)

    def test_refresh_bypasses_cache_and_empty_results_are_not_cached(self):
        fetch = mock.AsyncMock(return_value=_playlist_result([]))
        with mock.patch("core.fetch_playlist", fetch):
            self.client.get("/api/playlist", params={"url": PL})
            self.client.get("/api/playlist", params={"url": PL})
        self.assertEqual(fetch.await_count, 2)

        fetch = mock.AsyncMock(return_value=_playlist_result([S1]))
        with mock.patch("core.fetch_playlist", fetch):
            self.client.get("/api/playlist", params={"url": PL})
            resp = self.client.get("/api/playlist", params={"url": PL, "refresh": 1})
        self.assertEqual(fetch.await_count, 2)
        self.assertEqual(resp.json()["meta"]["refresh"], 1)

    def test_navigation_timeout_is_504(self):
        fetch = mock.AsyncMock(side_effect=NavigationTimeout("Timed out navigating", meta={"timeout_ms": 30000}))
        with mock.patch("core.fetch_playlist", fetch):
            resp = self.client.get("/api/playlist", params={"url": PL})
        self.assertEqual(resp.status_code, 504)
        self.assertEqual(resp.json()["detail"]["meta"], {"timeout_ms": 30000})

    def test_unexpected_error_is_502(self):
        with mock.patch("core.fetch_playlist", mock.AsyncMock(side_effect=RuntimeError("browser gone"))):
            resp = self.client.get("/api/playlist", params={"url": PL})
        self.assertEqual(resp.status_code, 502)


class SongEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app_module.app)

    def test_batch_returns_one_entry_per_identifier(self):
        payload = {
            S1: SongRecord.default(S1, CONFIG).to_dict(),
            S2: SongRecord.default(S2, CONFIG).to_dict(),
        }
        batch = mock.AsyncMock(return_value=payload)
        with mock.patch("core.fetch_songs_batch", batch):
            resp = self.client.post("/api/songs/batch", json={"identifiers": [S1, " ", S2]})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.json()), {S1, S2})
        batch.assert_awaited_once_with([S1, S2])

    def test_batch_limit(self):
        resp = self.client.post("/api/songs/batch", json={"identifiers": [S1] * 501})
        self.assertEqual(resp.status_code, 413)

    def test_single_song_rejects_malformed_identifier(self):
        resp = self.client.get("/api/songs/not-an-id")
        self.assertEqual(resp.status_code, 422)

    def test_stream_frames(self):
        async def fake_stream(identifiers, config):
            for ident in identifiers:
                yield StreamEvent.song(SongRecord.default(ident, config))
            yield StreamEvent.done(len(identifiers))

        with mock.patch("core.stream_fetch", fake_stream):
            resp = self.client.get("/api/songs/stream", params={"ids": f"{S1},{S2}"})
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/event-stream"))
        frames = _parse_sse(resp.text)
        self.assertEqual([f[0] for f in frames], ["song", "song", "done"])
        self.assertEqual(frames[0][1]["identifier"], S1)
        self.assertEqual(frames[-1][1], {"done": True, "count": 2})

    def test_stream_error_frame(self):
        async def fake_stream(identifiers, config):
            yield StreamEvent.failed("Failed to launch browser")

        with mock.patch("core.stream_fetch", fake_stream):
            resp = self.client.get("/api/songs/stream", params={"ids": S1})
        self.assertEqual(_parse_sse(resp.text), [("error", {"error": "Failed to launch browser"})])

    def test_stream_requires_ids(self):
        resp = self.client.get("/api/songs/stream", params={"ids": " , "})
        self.assertEqual(resp.status_code, 400)


class UserPlaylistsEndpointTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app_module.app)

    def test_lists_playlists(self):
        result = {
            "handle": "someone",
            "playlists": [{"identifier": PL, "url": f"https://suno.com/playlist/{PL}", "title": "Mix",
                           "cover_url": None, "song_count": 3}],
            "perf": {"fetch_ms": 5},
        }
        with mock.patch("core.fetch_user_playlists", mock.AsyncMock(return_value=result)):
            resp = self.client.get("/api/users/@someone/playlists")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["playlists"][0]["song_count"], 3)

    def test_health(self):
        self.assertTrue(self.client.get("/health").json()["ok"])


if __name__ == "__main__":
    unittest.main()
