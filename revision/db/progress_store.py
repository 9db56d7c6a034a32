"""
progress_store.py - Typed access to the per-user progress tables

Provides one ProgressStore over an open connection (aiosqlite or the
PostgreSQL wrapper from database.py) for:
- enrollments
- lesson_progress
- question_attempts
- weak_spots
- study_sessions

No business rules live here beyond CRUD and upsert-by-key. Driver errors are
re-raised as StoreReadFailed / StoreWriteFailed so callers can apply the
read/write degradation policy.
"""

import functools
import logging
from datetime import datetime, date, timezone
from typing import Optional, List

from fastapi import Depends

from revision.db.database import get_db
from revision.errors import StoreReadFailed, StoreWriteFailed
from revision.models.progress import (
    Enrollment,
    LessonProgress,
    QuestionAttempt,
    StudyDay,
    WeakSpot,
)

logger = logging.getLogger(__name__)


def _reads(func):
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except StoreReadFailed:
            raise
        except Exception as exc:
            logger.error("Store read %s failed: %s", func.__name__, exc)
            raise StoreReadFailed(f"{func.__name__}: {exc}") from exc
    return wrapper


def _writes(func):
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except StoreWriteFailed:
            raise
        except Exception as exc:
            logger.error("Store write %s failed: %s", func.__name__, exc)
            raise StoreWriteFailed(f"{func.__name__}: {exc}") from exc
    return wrapper


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def accuracy_percentage(correct: int, total: int) -> int:
    """round(correct / total * 100), clamped to [0, 100]; 0 when total is 0."""
    if total <= 0:
        return 0
    return max(0, min(100, round(correct / total * 100)))


class ProgressStore:
    def __init__(self, db):
        self.db = db

    # ══════════════════════════════════════════════════════════════════
    # ENROLLMENTS
    # ══════════════════════════════════════════════════════════════════

    @_writes
    async def create_enrollment(
        self,
        user_id: str,
        subject: str,
        target_tier: str = "Foundation",
        target_grade: Optional[str] = None,
    ) -> None:
        await self.db.execute(
            """INSERT INTO enrollments (user_id, subject, enrolled_at, target_tier, target_grade, status)
               VALUES (?, ?, ?, ?, ?, 'active')""",
            (user_id, subject.lower(), _now(), target_tier, target_grade),
        )
        await self.db.commit()

    @_reads
    async def get_enrollment(self, user_id: str, subject: str) -> Optional[Enrollment]:
        cursor = await self.db.execute(
            "SELECT * FROM enrollments WHERE user_id = ? AND subject = ?",
            (user_id, subject.lower()),
        )
        row = await cursor.fetchone()
        return Enrollment(**dict(row)) if row else None

    @_reads
    async def list_enrollments(self, user_id: str) -> List[Enrollment]:
        cursor = await self.db.execute(
            "SELECT * FROM enrollments WHERE user_id = ? ORDER BY enrolled_at DESC",
            (user_id,),
        )
        return [Enrollment(**dict(r)) for r in await cursor.fetchall()]

    @_writes
    async def update_enrollment_target(
        self, user_id: str, subject: str, target_tier: str, target_grade: Optional[str]
    ) -> None:
        await self.db.execute(
            "UPDATE enrollments SET target_tier = ?, target_grade = ? WHERE user_id = ? AND subject = ?",
            (target_tier, target_grade, user_id, subject.lower()),
        )
        await self.db.commit()

    @_writes
    async def update_enrollment_status(self, user_id: str, subject: str, status: str) -> None:
        await self.db.execute(
            "UPDATE enrollments SET status = ? WHERE user_id = ? AND subject = ?",
            (status, user_id, subject.lower()),
        )
        await self.db.commit()

    @_writes
    async def delete_enrollment(self, user_id: str, subject: str) -> dict:
        """Remove the enrollment and every record of the subject. Returns rows removed per table."""
        subject = subject.lower()
        removed = {}
        # Children first, enrollment last
        for table in ("question_attempts", "weak_spots", "lesson_progress", "study_sessions", "enrollments"):
            cursor = await self.db.execute(
                f"SELECT COUNT(*) AS n FROM {table} WHERE user_id = ? AND subject = ?",
                (user_id, subject),
            )
            row = await cursor.fetchone()
            await self.db.execute(
                f"DELETE FROM {table} WHERE user_id = ? AND subject = ?",
                (user_id, subject),
            )
            removed[table] = row["n"] if row else 0
        await self.db.commit()
        logger.info("Unenrolled %s from %s: %s", user_id, subject, removed)
        return removed

    # ══════════════════════════════════════════════════════════════════
    # LESSON PROGRESS
    # ══════════════════════════════════════════════════════════════════

    @_reads
    async def list_lesson_progress(self, user_id: str, subject: str) -> List[LessonProgress]:
        cursor = await self.db.execute(
            "SELECT * FROM lesson_progress WHERE user_id = ? AND subject = ? ORDER BY lesson_id",
            (user_id, subject.lower()),
        )
        return [LessonProgress(**dict(r)) for r in await cursor.fetchall()]

    @_reads
    async def get_lesson_progress(
        self, user_id: str, subject: str, lesson_id: int
    ) -> Optional[LessonProgress]:
        cursor = await self.db.execute(
            "SELECT * FROM lesson_progress WHERE user_id = ? AND subject = ? AND lesson_id = ?",
            (user_id, subject.lower(), lesson_id),
        )
        row = await cursor.fetchone()
        return LessonProgress(**dict(row)) if row else None

    _PROGRESS_FIELDS = ("lesson_slug", "status", "score", "time_spent_minutes", "attempts", "completed_at")

    @_writes
    async def upsert_lesson_progress(self, user_id: str, subject: str, lesson_id: int, **fields) -> None:
        """Insert or update the (user, subject, lesson) row.

        Only the given columns are written on conflict, so a partial update
        never clears columns it does not name.
        """
        unknown = set(fields) - set(self._PROGRESS_FIELDS)
        if unknown:
            raise ValueError(f"Unknown lesson progress fields: {sorted(unknown)}")

        columns = list(fields)
        values = [fields[c] for c in columns]
        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(f"{c} = excluded.{c}" for c in columns + ["updated_at"])

        await self.db.execute(
            f"""INSERT INTO lesson_progress (user_id, subject, lesson_id, {', '.join(columns + ['updated_at'])})
                VALUES (?, ?, ?, {placeholders}{', ' if columns else ''}?)
                ON CONFLICT (user_id, subject, lesson_id) DO UPDATE SET {assignments}""",
            (user_id, subject.lower(), lesson_id, *values, _now()),
        )
        await self.db.commit()

    # ══════════════════════════════════════════════════════════════════
    # QUESTION ATTEMPTS (append-only)
    # ══════════════════════════════════════════════════════════════════

    @_writes
    async def record_question_attempt(self, attempt: QuestionAttempt) -> None:
        await self.db.execute(
            """INSERT INTO question_attempts
               (user_id, subject, question_id, topic, subtopic, user_answer,
                is_correct, time_taken_seconds, practice_type, attempted_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                attempt.user_id,
                attempt.subject.lower(),
                attempt.question_id,
                attempt.topic,
                attempt.subtopic,
                attempt.user_answer,
                1 if attempt.is_correct else 0,
                attempt.time_taken_seconds,
                attempt.practice_type,
                attempt.attempted_at.isoformat(),
            ),
        )
        await self.db.commit()

    @_reads
    async def list_question_attempts(
        self,
        user_id: str,
        subject: str,
        limit: Optional[int] = 50,
        since: Optional[datetime] = None,
        incorrect_only: bool = False,
    ) -> List[QuestionAttempt]:
        """Most recent first."""
        sql = "SELECT * FROM question_attempts WHERE user_id = ? AND subject = ?"
        params: list = [user_id, subject.lower()]
        if since is not None:
            sql += " AND attempted_at >= ?"
            params.append(since.isoformat())
        if incorrect_only:
            sql += " AND is_correct = 0"
        sql += " ORDER BY attempted_at DESC, id DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        cursor = await self.db.execute(sql, tuple(params))
        return [QuestionAttempt(**dict(r)) for r in await cursor.fetchall()]

    @_reads
    async def count_question_attempts(self, user_id: str, subject: str) -> int:
        cursor = await self.db.execute(
            "SELECT COUNT(*) AS n FROM question_attempts WHERE user_id = ? AND subject = ?",
            (user_id, subject.lower()),
        )
        row = await cursor.fetchone()
        return row["n"] if row else 0

    # ══════════════════════════════════════════════════════════════════
    # WEAK SPOTS
    # ══════════════════════════════════════════════════════════════════

    @_writes
    async def apply_attempt_to_weak_spot(
        self,
        user_id: str,
        subject: str,
        topic: str,
        subtopic: str,
        is_correct: bool,
        attempted_at: datetime,
        threshold: int,
    ) -> WeakSpot:
        """Fold one attempt into the (topic, subtopic) accuracy row."""
        subject = subject.lower()
        cursor = await self.db.execute(
            """SELECT total_attempts, correct_attempts, last_incorrect_at FROM weak_spots
               WHERE user_id = ? AND subject = ? AND topic = ? AND subtopic = ?""",
            (user_id, subject, topic, subtopic),
        )
        row = await cursor.fetchone()
        total = (row["total_attempts"] if row else 0) + 1
        correct = (row["correct_attempts"] if row else 0) + (1 if is_correct else 0)
        last_incorrect = row["last_incorrect_at"] if row else None
        if not is_correct:
            last_incorrect = attempted_at.isoformat()

        spot = WeakSpot(
            user_id=user_id,
            subject=subject,
            topic=topic,
            subtopic=subtopic,
            total_attempts=total,
            correct_attempts=correct,
            accuracy_percentage=accuracy_percentage(correct, total),
            last_incorrect_at=last_incorrect,
        )
        spot.needs_practice = spot.accuracy_percentage < threshold

        await self.db.execute(
            """INSERT INTO weak_spots
               (user_id, subject, topic, subtopic, total_attempts, correct_attempts,
                accuracy_percentage, needs_practice, last_incorrect_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (user_id, subject, topic, subtopic) DO UPDATE SET
                   total_attempts = excluded.total_attempts,
                   correct_attempts = excluded.correct_attempts,
                   accuracy_percentage = excluded.accuracy_percentage,
                   needs_practice = excluded.needs_practice,
                   last_incorrect_at = excluded.last_incorrect_at,
                   updated_at = excluded.updated_at""",
            (
                user_id, subject, topic, subtopic, total, correct,
                spot.accuracy_percentage, 1 if spot.needs_practice else 0,
                last_incorrect, _now(),
            ),
        )
        await self.db.commit()
        return spot

    @_reads
    async def list_weak_spots(
        self, user_id: str, subject: str, needs_practice_only: bool = True
    ) -> List[WeakSpot]:
        sql = "SELECT * FROM weak_spots WHERE user_id = ? AND subject = ?"
        if needs_practice_only:
            sql += " AND needs_practice = 1"
        sql += " ORDER BY accuracy_percentage ASC, total_attempts DESC"
        cursor = await self.db.execute(sql, (user_id, subject.lower()))
        return [WeakSpot(**dict(r)) for r in await cursor.fetchall()]

    # ══════════════════════════════════════════════════════════════════
    # STUDY SESSIONS (one row per user, subject and day)
    # ══════════════════════════════════════════════════════════════════

    @_writes
    async def add_study_time(
        self,
        user_id: str,
        subject: str,
        minutes: float,
        lessons_completed: int = 0,
        questions_answered: int = 0,
        on_date: Optional[date] = None,
    ) -> None:
        study_date = (on_date or datetime.now(timezone.utc).date()).isoformat()
        await self.db.execute(
            """INSERT INTO study_sessions
               (user_id, subject, study_date, total_minutes, lessons_completed, questions_answered)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT (user_id, subject, study_date) DO UPDATE SET
                   total_minutes = study_sessions.total_minutes + excluded.total_minutes,
                   lessons_completed = study_sessions.lessons_completed + excluded.lessons_completed,
                   questions_answered = study_sessions.questions_answered + excluded.questions_answered""",
            (user_id, subject.lower(), study_date, minutes, lessons_completed, questions_answered),
        )
        await self.db.commit()

    @_reads
    async def list_study_days(
        self, user_id: str, since: date, subject: Optional[str] = None
    ) -> List[StudyDay]:
        sql = "SELECT * FROM study_sessions WHERE user_id = ? AND study_date >= ?"
        params: list = [user_id, since.isoformat()]
        if subject is not None:
            sql += " AND subject = ?"
            params.append(subject.lower())
        sql += " ORDER BY study_date DESC"
        cursor = await self.db.execute(sql, tuple(params))
        return [StudyDay(**dict(r)) for r in await cursor.fetchall()]


async def get_store(db=Depends(get_db)) -> ProgressStore:
    """FastAPI dependency wrapping the request's connection."""
    return ProgressStore(db)
