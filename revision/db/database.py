"""Connection layer for the progress store.

DATABASE_URL starting with postgresql:// selects an asyncpg pool; otherwise
an aiosqlite file at DATABASE_PATH is used. ProgressStore queries are
written once with ? placeholders; PostgresConnection rewrites them to $N and
hands back asyncpg Records, which already support dict(row) and row["col"].
"""

import logging
import re
from pathlib import Path

from alembic import command
from alembic.config import Config

from revision.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

_pg_pool = None

# A quoted literal, or a bare ? to number
_PLACEHOLDER_RE = re.compile(r"'(?:[^']|'')*'|\?")


def _is_postgres() -> bool:
    return settings.database_url.startswith("postgresql://")


def to_dollar_params(sql: str) -> str:
    """SELECT ... WHERE a = ? AND b = ?  ->  SELECT ... WHERE a = $1 AND b = $2"""
    position = 0

    def number(match):
        nonlocal position
        if match.group(0) != "?":
            return match.group(0)
        position += 1
        return f"${position}"

    return _PLACEHOLDER_RE.sub(number, sql)


class _RecordCursor:
    def __init__(self, records=()):
        self._records = list(records)

    async def fetchone(self):
        return self._records.pop(0) if self._records else None

    async def fetchall(self):
        records, self._records = self._records, []
        return records


class PostgresConnection:
    """The slice of the aiosqlite API that ProgressStore relies on."""

    def __init__(self, conn):
        self._conn = conn

    async def execute(self, sql: str, params=()):
        statement = to_dollar_params(sql)
        args = tuple(params or ())
        if statement.lstrip().upper().startswith("SELECT"):
            return _RecordCursor(await self._conn.fetch(statement, *args))
        await self._conn.execute(statement, *args)
        return _RecordCursor()

    async def commit(self):
        # Each asyncpg statement commits on its own outside a transaction block
        return None

    async def close(self):
        return None


async def _pool():
    global _pg_pool
    if _pg_pool is None:
        import asyncpg
        _pg_pool = await asyncpg.create_pool(settings.database_url, min_size=1, max_size=10)
    return _pg_pool


async def connect_sqlite(path: str):
    import aiosqlite
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    return db


async def get_db():
    """FastAPI dependency: one connection per request."""
    if _is_postgres():
        pool = await _pool()
        async with pool.acquire() as conn:
            yield PostgresConnection(conn)
        return

    db = await connect_sqlite(settings.database_path)
    try:
        yield db
    finally:
        await db.close()


def _run_migrations():
    alembic_cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(PROJECT_ROOT / "migrations"))
    url = settings.database_url if _is_postgres() else f"sqlite:///{settings.database_path}"
    alembic_cfg.set_main_option("sqlalchemy.url", url)
    # env.py keeps this URL instead of re-reading the environment
    alembic_cfg.attributes["configured_by_app"] = True
    command.upgrade(alembic_cfg, "head")


async def init_db():
    if _is_postgres():
        logger.info("Progress store: PostgreSQL at %s", settings.database_url.split("@")[-1])
    else:
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        logger.info("Progress store: SQLite at %s", settings.database_path)
    _run_migrations()


async def close_db():
    global _pg_pool
    if _pg_pool is not None:
        await _pg_pool.close()
        _pg_pool = None
