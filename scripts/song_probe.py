#!/usr/bin/env python3
"""
Suno song probe.

Runs both extraction tiers on one song and shows which heuristic produced each
field, then the merged record a player would end up with.

Usage:
    python scripts/song_probe.py <song-id-or-url> [--static-only]
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from lib.suno.config import load_config
from lib.suno.normalizer import scan_identifiers
from lib.suno.orchestrator import fetch_song_static
from lib.suno.rendered import fetch_rendered_song
from playwright_pool import open_session

logging.basicConfig(
    level=logging.INFO,
    format="[%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)


def _print_record(label, record):
    print(f"\n--- {label} ---")
    for name, value in record.to_dict().items():
        if name == "identifier":
            continue
        shown = value if not isinstance(value, str) or len(value) < 100 else value[:100] + "..."
        print(f"  {name:12} {record.provenance.get(name, '-'):16} {shown!r}")


async def main(argv):
    args = [a for a in argv[1:] if not a.startswith("--")]
    if not args:
        print(__doc__)
        return 2
    ids = scan_identifiers(args[0])
    if not ids:
        print(f"No song identifier in {args[0]!r}")
        return 2
    identifier = ids[0]
    config = load_config()

    static = await fetch_song_static(identifier, config)
    _print_record("static tier", static)
    if "--static-only" in argv:
        return 0

    async with open_session(config) as session:
        rendered = await fetch_rendered_song(session, identifier, config)
    _print_record("rendered tier", rendered)

    merged = static.merge(rendered)
    _print_record("merged", merged)
    print("\n" + json.dumps(merged.to_dict(with_provenance=True), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main(sys.argv)))
