"""Lesson endpoints: manifest with progress, markdown content, start and complete."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from revision.db.progress_store import ProgressStore, get_store
from revision.errors import StoreReadFailed, StoreWriteFailed
from revision.models.lesson import LessonContent, LessonListResponse, LessonMeta
from revision.models.progress import LessonCompletion, LessonProgress
from revision.routes.auth import UserSession, get_current_session
from revision.services import progress_tracker
from revision.services.content_loader import ContentLoader, get_content_loader

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subjects/{subject}/lessons", tags=["lessons"])


async def _find_lesson(loader: ContentLoader, subject: str, slug: str) -> LessonMeta:
    lessons = await loader.load_lessons(subject)
    for lesson in lessons:
        if lesson.slug == slug:
            return lesson
    raise HTTPException(status_code=404, detail="Lesson not found")


@router.get("", response_model=LessonListResponse)
async def list_lessons(
    subject: str,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    lessons = await loader.load_lessons(subject)
    return await progress_tracker.list_lessons(store, user, subject.lower(), lessons)


@router.get("/{slug}/content", response_model=LessonContent)
async def lesson_content(
    subject: str,
    slug: str,
    user: UserSession = Depends(get_current_session),
    loader: ContentLoader = Depends(get_content_loader),
):
    lesson = await _find_lesson(loader, subject, slug)
    if not lesson.content_ready:
        raise HTTPException(status_code=404, detail="Lesson content is not ready yet")
    return await loader.load_lesson_content(subject, lesson)


@router.post("/{slug}/start")
async def start_lesson(
    subject: str,
    slug: str,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    lesson = await _find_lesson(loader, subject, slug)
    try:
        status = await progress_tracker.start_lesson(store, user, subject.lower(), lesson)
    except (StoreReadFailed, StoreWriteFailed):
        raise HTTPException(status_code=503, detail="Could not save progress, please try again")
    return {"lesson_id": lesson.id, "slug": lesson.slug, "status": status.value}


@router.post("/{slug}/complete", response_model=LessonProgress)
async def complete_lesson(
    subject: str,
    slug: str,
    body: LessonCompletion | None = None,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    lesson = await _find_lesson(loader, subject, slug)
    try:
        return await progress_tracker.complete_lesson(
            store, user, subject.lower(), lesson, body or LessonCompletion()
        )
    except (StoreReadFailed, StoreWriteFailed):
        raise HTTPException(status_code=503, detail="Could not save progress, please try again")
