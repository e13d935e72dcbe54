#!/usr/bin/env python3
"""
Latency diagnosis tool.
Measures the three phases a player UI goes through against a running server:
playlist enumeration (rendered), fast pass (static batch), slow pass (SSE stream).

Usage:
    python tools/diagnose_latency.py "https://suno.com/playlist/<id>" [max_songs]
"""
import json
import sys
import time

import requests

BACKEND_URL = "http://127.0.0.1:8000"
DEFAULT_PLAYLIST = "https://suno.com/playlist/00000000-0000-0000-0000-000000000000"


def measure_playlist(url):
    print(f"\n{'='*60}")
    print("PHASE 1: Playlist enumeration (refresh=1, no cache)")
    print(f"{'='*60}")
    t0 = time.time()
    try:
        response = requests.get(
            f"{BACKEND_URL}/api/playlist",
            params={"url": url, "refresh": "1"},
            timeout=120,
        )
        response.raise_for_status()
    except Exception as e:
        print(f"\n❌ Error: {e}")
        return None
    data = response.json()
    elapsed_ms = (time.time() - t0) * 1000
    playlist = data.get("playlist", {})
    meta = data.get("meta", {})
    ids = playlist.get("member_identifiers", [])
    print(f"  Title:            {playlist.get('title')}")
    print(f"  Discovery:        {playlist.get('discovery')}")
    print(f"  Songs:            {len(ids)}")
    print(f"  Backend fetch_ms: {meta.get('fetch_ms', 0):8.1f} ms")
    print(f"  Client total:     {elapsed_ms:8.1f} ms")
    return {"ids": ids, "total_ms": elapsed_ms, "backend_ms": meta.get("fetch_ms", 0)}


def measure_batch(ids):
    print(f"\n{'='*60}")
    print(f"PHASE 2: Fast pass (static batch, {len(ids)} songs)")
    print(f"{'='*60}")
    t0 = time.time()
    try:
        response = requests.post(f"{BACKEND_URL}/api/songs/batch", json={"identifiers": ids}, timeout=120)
        response.raise_for_status()
    except Exception as e:
        print(f"\n❌ Error: {e}")
        return None
    data = response.json()
    elapsed_ms = (time.time() - t0) * 1000
    unknown = sum(1 for s in data.values() if not s.get("title"))
    print(f"  Entries:          {len(data)} (expected {len(ids)})")
    print(f"  Without title:    {unknown}")
    print(f"  Client total:     {elapsed_ms:8.1f} ms")
    return {"total_ms": elapsed_ms, "unresolved": unknown}


def measure_stream(ids):
    print(f"\n{'='*60}")
    print(f"PHASE 3: Slow pass (rendered stream, {len(ids)} songs)")
    print(f"{'='*60}")
    t0 = time.time()
    first_ms = None
    songs = 0
    try:
        with requests.get(
            f"{BACKEND_URL}/api/songs/stream",
            params={"ids": ",".join(ids)},
            stream=True,
            timeout=600,
        ) as response:
            response.raise_for_status()
            event = None
            for line in response.iter_lines(decode_unicode=True):
                if line.startswith("event: "):
                    event = line[len("event: "):]
                elif line.startswith("data: "):
                    payload = json.loads(line[len("data: "):])
                    now_ms = (time.time() - t0) * 1000
                    if event == "song":
                        songs += 1
                        if first_ms is None:
                            first_ms = now_ms
                        print(f"  [{now_ms:8.1f} ms] {payload.get('identifier')} artist={payload.get('artist')!r}")
                    elif event == "error":
                        print(f"  [{now_ms:8.1f} ms] ❌ stream error: {payload.get('error')}")
                    elif event == "done":
                        print(f"  [{now_ms:8.1f} ms] ✅ done")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        return None
    elapsed_ms = (time.time() - t0) * 1000
    print(f"  First event:      {first_ms or 0:8.1f} ms (browser launch + first song)")
    print(f"  Client total:     {elapsed_ms:8.1f} ms")
    return {"total_ms": elapsed_ms, "first_ms": first_ms or 0, "songs": songs}


def main():
    url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_PLAYLIST
    max_songs = int(sys.argv[2]) if len(sys.argv) > 2 else 10

    playlist = measure_playlist(url)
    if not playlist or not playlist["ids"]:
        print("\nNo songs to measure.")
        return
    ids = playlist["ids"][:max_songs]
    batch = measure_batch(ids)
    stream = measure_stream(ids)

    print(f"\n\n{'='*60}")
    print("📈 SUMMARY")
    print(f"{'='*60}")
    print(f"  Playlist:   {playlist['total_ms']:8.0f} ms")
    if batch:
        print(f"  Fast pass:  {batch['total_ms']:8.0f} ms ({batch['unresolved']} without title)")
    if stream:
        per_song = stream["total_ms"] / max(1, stream["songs"])
        print(f"  Slow pass:  {stream['total_ms']:8.0f} ms (~{per_song:.0f} ms/song)")
        if batch and stream["first_ms"] > batch["total_ms"]:
            print("\n  Fast pass finished before the first slow-pass event, as intended.")


if __name__ == "__main__":
    main()
