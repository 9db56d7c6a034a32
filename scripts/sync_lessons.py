#!/usr/bin/env python3
"""Copy the canonical lessons manifest to the served content directory.

Usage:
    python scripts/sync_lessons.py [--source PATH] [--dest PATH]

Run it whenever contentReady flags change in data/<subject>/lessons.json.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from revision.errors import ContentUnavailable
from revision.services.content_sync import sync_lessons_manifest

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Sync lessons.json into the served content tree")
    parser.add_argument(
        "--source",
        default=str(PROJECT_ROOT / "data" / "maths" / "lessons.json"),
        help="Canonical manifest (default: data/maths/lessons.json)",
    )
    parser.add_argument(
        "--dest",
        default=str(PROJECT_ROOT / "public" / "data" / "maths" / "lessons.json"),
        help="Served copy (default: public/data/maths/lessons.json)",
    )
    args = parser.parse_args(argv)

    print("Syncing lessons.json...")
    try:
        result = sync_lessons_manifest(Path(args.source), Path(args.dest))
    except ContentUnavailable as e:
        print(f"ERROR syncing lessons.json: {e}", file=sys.stderr)
        return 1

    print(f"Source: {result.source}")
    print(f"Destination: {result.destination}")
    print(f"Content status: {result.ready} ready, {result.pending} pending")
    return 0


if __name__ == "__main__":
    sys.exit(main())
