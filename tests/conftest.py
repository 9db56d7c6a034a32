"""Shared fixtures. Settings are read at import, so the environment is set first."""

import asyncio
import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent

os.environ.setdefault("JWT_SECRET", "test-secret-that-is-long-enough-for-hs256-checks")
os.environ.setdefault("CONTENT_DIR", str(PROJECT_ROOT / "public" / "data"))
os.environ.setdefault("CONTENT_BASE_URL", "http://content.test")

sys.path.insert(0, str(PROJECT_ROOT))

import aiosqlite
import pytest

from revision.db.database import SCHEMA_PATH
from revision.db.progress_store import ProgressStore
from revision.routes.auth import UserSession


async def open_test_db(path=":memory:"):
    """Connection with the full schema applied."""
    db = await aiosqlite.connect(str(path))
    db.row_factory = aiosqlite.Row
    await db.executescript(SCHEMA_PATH.read_text())
    await db.commit()
    return db


def run_with_store(coro_fn):
    """Run coro_fn(store) against a fresh in-memory database."""
    async def runner():
        db = await open_test_db()
        try:
            return await coro_fn(ProgressStore(db))
        finally:
            await db.close()
    return asyncio.run(runner())


@pytest.fixture
def user():
    return UserSession(user_id="user-1", email="student@example.com", token="t")


@pytest.fixture
def other_user():
    return UserSession(user_id="user-2", email="other@example.com", token="t2")
