"""Statistics endpoints: per-subject stats, improvement series and the dashboard."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from revision.db.progress_store import ProgressStore, get_store
from revision.errors import ContentUnavailable, StoreReadFailed
from revision.models.progress import DashboardResponse, ImprovementMetrics, ProgressStats
from revision.routes.auth import UserSession, get_current_session
from revision.services import progress_tracker
from revision.services.content_loader import ContentLoader, get_content_loader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


async def _total_lessons(loader: ContentLoader, subject: str) -> Optional[int]:
    try:
        return len(await loader.load_lessons(subject))
    except ContentUnavailable as e:
        logger.warning(f"Lesson manifest for {subject} unavailable, counting tracked lessons: {e}")
        return None


@router.get("/subjects/{subject}/stats", response_model=ProgressStats)
async def subject_stats(
    subject: str,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    subject = subject.lower()
    total = await _total_lessons(loader, subject)
    return await progress_tracker.load_stats(store, user, subject, total_lessons=total)


@router.get("/subjects/{subject}/improvement", response_model=Optional[ImprovementMetrics])
async def subject_improvement(
    subject: str,
    days: int = 30,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    return await progress_tracker.load_improvement(store, user, subject.lower(), days=days)


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    try:
        enrollments = await store.list_enrollments(user.user_id)
    except StoreReadFailed as e:
        logger.error(f"Enrollments unavailable for {user.user_id}: {e}")
        enrollments = []

    stats = {}
    for enrollment in enrollments:
        total = await _total_lessons(loader, enrollment.subject)
        stats[enrollment.subject] = await progress_tracker.load_stats(
            store, user, enrollment.subject, total_lessons=total
        )

    return DashboardResponse(
        enrollments=enrollments,
        stats=stats,
        streak=await progress_tracker.overall_streak(store, user),
    )
