"""Lesson progress transitions and store-backed statistics.

Reads that fail fall back to empty/default shapes so every screen has
something to render; lesson writes propagate StoreWriteFailed to the route.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from revision.config import settings
from revision.db.progress_store import ProgressStore
from revision.errors import StoreReadFailed
from revision.models.lesson import LessonListResponse, LessonMeta, LessonOverview
from revision.models.progress import (
    ImprovementMetrics,
    LessonCompletion,
    LessonProgress,
    LessonStatus,
    ProgressStats,
    WeakSpotAnalysis,
)
from revision.routes.auth import UserSession
from revision.services import stats_engine

logger = logging.getLogger(__name__)

RETRY_WINDOW_DAYS = 30


def _today() -> date:
    return datetime.now(timezone.utc).date()


async def _progress_by_lesson(store: ProgressStore, session: UserSession, subject: str) -> dict[int, LessonProgress]:
    try:
        rows = await store.list_lesson_progress(session.user_id, subject)
    except StoreReadFailed as e:
        logger.error(f"Lesson progress unavailable for {session.user_id}/{subject}: {e}")
        return {}
    return {p.lesson_id: p for p in rows}


async def start_lesson(
    store: ProgressStore, session: UserSession, subject: str, lesson: LessonMeta
) -> LessonStatus:
    """not_started -> in_progress. Lessons already started or completed are left as they are."""
    current = await store.get_lesson_progress(session.user_id, subject, lesson.id)
    if current is not None:
        status = stats_engine.effective_status(current)
        if status != LessonStatus.NOT_STARTED:
            return status

    await store.upsert_lesson_progress(
        session.user_id,
        subject,
        lesson.id,
        lesson_slug=lesson.slug,
        status=LessonStatus.IN_PROGRESS.value,
    )
    return LessonStatus.IN_PROGRESS


async def complete_lesson(
    store: ProgressStore,
    session: UserSession,
    subject: str,
    lesson: LessonMeta,
    completion: LessonCompletion,
) -> LessonProgress:
    current = await store.get_lesson_progress(session.user_id, subject, lesson.id)
    attempts = (current.attempts if current else 0) + 1
    completed_at = datetime.now(timezone.utc)

    await store.upsert_lesson_progress(
        session.user_id,
        subject,
        lesson.id,
        lesson_slug=lesson.slug,
        status=LessonStatus.COMPLETED.value,
        score=completion.score,
        attempts=attempts,
        time_spent_minutes=completion.time_spent_minutes,
        completed_at=completed_at.isoformat(),
    )
    await store.add_study_time(
        session.user_id,
        subject,
        minutes=completion.time_spent_minutes,
        lessons_completed=1,
        on_date=completed_at.date(),
    )
    logger.info(f"User {session.user_id} completed {subject} lesson {lesson.slug}")

    return LessonProgress(
        user_id=session.user_id,
        subject=subject,
        lesson_id=lesson.id,
        lesson_slug=lesson.slug,
        status=LessonStatus.COMPLETED,
        score=completion.score,
        time_spent_minutes=completion.time_spent_minutes,
        attempts=attempts,
        completed_at=completed_at,
    )


async def list_lessons(
    store: ProgressStore, session: UserSession, subject: str, lessons: list[LessonMeta]
) -> LessonListResponse:
    """Merge the manifest with the caller's progress and prerequisite locks."""
    progress = await _progress_by_lesson(store, session, subject)
    statuses = {lesson_id: stats_engine.effective_status(p) for lesson_id, p in progress.items()}

    overviews = []
    for lesson in lessons:
        status = statuses.get(lesson.id, LessonStatus.NOT_STARTED)
        locked = any(statuses.get(prereq) != LessonStatus.COMPLETED for prereq in lesson.prerequisites)
        entry = progress.get(lesson.id)
        overviews.append(
            LessonOverview(
                lesson=lesson,
                status=status.value,
                score=entry.score if entry else None,
                locked=locked,
                available=lesson.content_ready,
            )
        )

    return LessonListResponse(
        subject=subject,
        total_lessons=len(lessons),
        completed_lessons=sum(1 for o in overviews if o.status == LessonStatus.COMPLETED.value),
        lessons=overviews,
    )


async def load_stats(
    store: ProgressStore,
    session: UserSession,
    subject: str,
    total_lessons: Optional[int] = None,
    today: Optional[date] = None,
) -> ProgressStats:
    """Statistics for one subject, or a zeroed ProgressStats if the store cannot be read."""
    today = today or _today()
    try:
        enrollment = await store.get_enrollment(session.user_id, subject)
        attempts = await store.list_question_attempts(
            session.user_id, subject, limit=settings.accuracy_window
        )
        progress = await store.list_lesson_progress(session.user_id, subject)
        study_days = await store.list_study_days(
            session.user_id, since=today - timedelta(days=settings.streak_window_days)
        )
        weak_spots = await store.list_weak_spots(session.user_id, subject)
    except StoreReadFailed as e:
        logger.error(f"Falling back to default stats for {session.user_id}/{subject}: {e}")
        return ProgressStats(subject=subject, degraded=True)

    return stats_engine.compute_stats(
        subject,
        attempts,
        progress,
        study_days=study_days,
        weak_spots=weak_spots,
        enrollment=enrollment,
        total_lessons=total_lessons,
        today=today,
        accuracy_window=settings.accuracy_window,
        streak_window_days=settings.streak_window_days,
        streak_min_minutes=settings.streak_min_minutes,
        min_attempts=settings.min_attempts_for_prediction,
    )


async def overall_streak(store: ProgressStore, session: UserSession, today: Optional[date] = None) -> int:
    """Streak across all subjects."""
    today = today or _today()
    try:
        days = await store.list_study_days(
            session.user_id, since=today - timedelta(days=settings.streak_window_days)
        )
    except StoreReadFailed as e:
        logger.error(f"Streak unavailable for {session.user_id}: {e}")
        return 0
    return stats_engine.study_streak(
        stats_engine.daily_minutes(days),
        today,
        settings.streak_window_days,
        settings.streak_min_minutes,
    )


async def load_weak_spot_analysis(
    store: ProgressStore, session: UserSession, subject: str
) -> WeakSpotAnalysis:
    try:
        spots = await store.list_weak_spots(session.user_id, subject)
        incorrect = await store.list_question_attempts(
            session.user_id,
            subject,
            limit=20,
            since=datetime.now(timezone.utc) - timedelta(days=RETRY_WINDOW_DAYS),
            incorrect_only=True,
        )
    except StoreReadFailed as e:
        logger.error(f"Weak spots unavailable for {session.user_id}/{subject}: {e}")
        return WeakSpotAnalysis()
    return stats_engine.weak_spot_analysis(spots, incorrect)


async def load_improvement(
    store: ProgressStore, session: UserSession, subject: str, days: int = 30
) -> Optional[ImprovementMetrics]:
    try:
        attempts = await store.list_question_attempts(
            session.user_id,
            subject,
            limit=None,
            since=datetime.now(timezone.utc) - timedelta(days=days),
        )
    except StoreReadFailed as e:
        logger.error(f"Improvement metrics unavailable for {session.user_id}/{subject}: {e}")
        return None
    return stats_engine.improvement_metrics(attempts)
