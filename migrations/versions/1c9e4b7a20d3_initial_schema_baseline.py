"""initial_schema_baseline

Baseline migration creating the progress store tables.
For databases created from schema.sql directly, stamp this revision:
    alembic stamp 1c9e4b7a20d3

Revision ID: 1c9e4b7a20d3
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "1c9e4b7a20d3"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _adapt_sql(sql: str, dialect_name: str) -> str:
    """Adapt DDL for the target database dialect."""
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Create the schema from revision/db/schema.sql (CREATE ... IF NOT EXISTS throughout)."""
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "revision" / "db" / "schema.sql"
    schema_sql = schema_path.read_text()
    # op.execute runs one statement at a time
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    for table in [
        "study_sessions",
        "weak_spots",
        "question_attempts",
        "lesson_progress",
        "enrollments",
    ]:
        op.drop_table(table)
