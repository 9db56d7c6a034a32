"""Publish a subject's canonical lessons.json into the served content tree."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from revision.errors import ContentUnavailable

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    source: Path
    destination: Path
    ready: int
    pending: int


def sync_lessons_manifest(source: Path, destination: Path) -> SyncResult:
    """Copy the manifest byte-for-byte and count ready vs pending lessons.

    The source is parsed before anything is written, so a broken manifest
    never replaces a good one.
    """
    source, destination = Path(source), Path(destination)
    try:
        raw = source.read_text(encoding="utf-8")
    except OSError as exc:
        raise ContentUnavailable(str(source), str(exc)) from exc

    try:
        lessons = json.loads(raw)["lessons"]
        ready = sum(1 for lesson in lessons if lesson.get("contentReady"))
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise ContentUnavailable(str(source), f"malformed manifest: {exc}") from exc

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(raw, encoding="utf-8")
    except OSError as exc:
        raise ContentUnavailable(str(destination), str(exc)) from exc

    logger.info(f"Synced {source} -> {destination}")
    return SyncResult(source=source, destination=destination, ready=ready, pending=len(lessons) - ready)
