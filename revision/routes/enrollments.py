"""Subject enrollment endpoints: enroll, list, change target, pause/resume, unenroll."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from revision.db.progress_store import ProgressStore, get_store
from revision.errors import StoreReadFailed, StoreWriteFailed
from revision.models.progress import (
    GRADE_RANGES,
    Enrollment,
    EnrollRequest,
    StatusUpdate,
    TargetUpdate,
    Tier,
    default_target_grade,
)
from revision.routes.auth import UserSession, get_current_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/enrollments", tags=["enrollments"])


def _check_grade(tier: Tier, grade: str | None) -> str:
    """Default the target grade for the tier and reject grades outside it."""
    if not grade:
        return default_target_grade(tier)
    try:
        number = int(grade.replace("Grade", "").strip())
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid grade: {grade}")
    if number not in GRADE_RANGES[tier]:
        raise HTTPException(
            status_code=422,
            detail=f"{tier.value} tier covers grades {GRADE_RANGES[tier][0]}-{GRADE_RANGES[tier][-1]}",
        )
    return f"Grade {number}"


async def _require_enrollment(store: ProgressStore, user: UserSession, subject: str) -> Enrollment:
    try:
        enrollment = await store.get_enrollment(user.user_id, subject)
    except StoreReadFailed:
        raise HTTPException(status_code=503, detail="Progress store unavailable")
    if not enrollment:
        raise HTTPException(status_code=404, detail="Not enrolled in this subject")
    return enrollment


@router.get("", response_model=list[Enrollment])
async def list_enrollments(
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    try:
        return await store.list_enrollments(user.user_id)
    except StoreReadFailed:
        # Reads degrade to an empty list
        return []


@router.post("", response_model=Enrollment, status_code=201)
async def enroll(
    body: EnrollRequest,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    target_grade = _check_grade(body.target_tier, body.target_grade)
    try:
        if await store.get_enrollment(user.user_id, body.subject):
            raise HTTPException(status_code=409, detail="Already enrolled in this subject")
        await store.create_enrollment(user.user_id, body.subject, body.target_tier.value, target_grade)
        enrollment = await store.get_enrollment(user.user_id, body.subject)
    except (StoreReadFailed, StoreWriteFailed):
        raise HTTPException(status_code=503, detail="Could not save enrollment, please try again")

    logger.info(f"User {user.user_id} enrolled in {body.subject} ({body.target_tier.value})")
    return enrollment


@router.put("/{subject}/target", response_model=Enrollment)
async def change_target(
    subject: str,
    body: TargetUpdate,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    await _require_enrollment(store, user, subject)
    target_grade = _check_grade(body.target_tier, body.target_grade)
    try:
        await store.update_enrollment_target(user.user_id, subject, body.target_tier.value, target_grade)
    except StoreWriteFailed:
        raise HTTPException(status_code=503, detail="Could not update target, please try again")
    return await _require_enrollment(store, user, subject)


@router.put("/{subject}/status", response_model=Enrollment)
async def change_status(
    subject: str,
    body: StatusUpdate,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    await _require_enrollment(store, user, subject)
    try:
        await store.update_enrollment_status(user.user_id, subject, body.status.value)
    except StoreWriteFailed:
        raise HTTPException(status_code=503, detail="Could not update status, please try again")
    return await _require_enrollment(store, user, subject)


@router.delete("/{subject}")
async def unenroll(
    subject: str,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    await _require_enrollment(store, user, subject)
    try:
        removed = await store.delete_enrollment(user.user_id, subject)
    except StoreWriteFailed:
        raise HTTPException(status_code=503, detail="Could not unenroll, please try again")
    return {"subject": subject.lower(), "removed": removed}
