"""Practice session endpoints (normal, timed and weak-spot modes)."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from revision.config import settings
from revision.db.progress_store import ProgressStore, get_store
from revision.errors import StoreReadFailed, ValidationError
from revision.models.practice import (
    AnswerSubmission,
    Evaluation,
    PracticeMode,
    PublicQuestion,
    SessionSummary,
    StartSessionRequest,
)
from revision.models.progress import WeakSpotAnalysis
from revision.routes.auth import UserSession, get_current_session
from revision.services import progress_tracker
from revision.services.content_loader import ContentLoader, get_content_loader
from revision.services.practice_session import (
    AlreadyAnswered,
    PracticeSession,
    QuestionNotInSession,
    SessionClosed,
    registry,
)
from revision.services.question_selector import select_questions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/practice", tags=["practice"])


class SessionStarted(BaseModel):
    session: SessionSummary
    questions: list[PublicQuestion]


class AnswerResult(BaseModel):
    evaluation: Evaluation
    session: SessionSummary


def _get_session(session_id: str, user: UserSession) -> PracticeSession:
    practice = registry.get(session_id, user.user_id)
    if practice is None:
        raise HTTPException(status_code=404, detail="Practice session not found")
    return practice


@router.post("/{subject}/sessions", response_model=SessionStarted, status_code=201)
async def start_session(
    subject: str,
    body: StartSessionRequest | None = None,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
    loader: ContentLoader = Depends(get_content_loader),
):
    body = body or StartSessionRequest()
    subject = subject.lower()
    count = body.count if body.count is not None else settings.default_question_count
    if count < 1:
        raise HTTPException(status_code=422, detail="count must be at least 1")

    bank = await loader.load_bank(subject)

    weak_spots = None
    if body.mode == PracticeMode.WEAK_SPOT:
        try:
            weak_spots = await store.list_weak_spots(user.user_id, subject)
        except StoreReadFailed as e:
            logger.error(f"Weak spots unavailable for {user.user_id}/{subject}: {e}")
            weak_spots = []

    questions = select_questions(bank, count, mode=body.mode, weak_spots=weak_spots)
    practice = PracticeSession(
        user.user_id,
        bank,
        questions,
        mode=body.mode,
        time_limit_seconds=settings.timed_duration_seconds,
    )
    practice.start()
    registry.add(practice)

    logger.info(
        f"Started {body.mode.value} session {practice.id} for {user.user_id} "
        f"({len(questions)} {subject} questions)"
    )
    return SessionStarted(session=practice.summary(), questions=practice.public_questions())


@router.get("/sessions/{session_id}", response_model=SessionStarted)
async def get_session(session_id: str, user: UserSession = Depends(get_current_session)):
    practice = _get_session(session_id, user)
    return SessionStarted(session=practice.summary(), questions=practice.public_questions())


@router.post("/sessions/{session_id}/answers", response_model=AnswerResult)
async def submit_answer(
    session_id: str,
    body: AnswerSubmission,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    practice = _get_session(session_id, user)
    try:
        evaluation = await practice.submit(
            store, user, body.question_key, body.answer, body.time_taken_seconds
        )
    except SessionClosed:
        raise HTTPException(status_code=409, detail="Practice session is closed")
    except AlreadyAnswered:
        raise HTTPException(status_code=409, detail="Question already answered")
    except QuestionNotInSession:
        raise HTTPException(status_code=404, detail="Question is not part of this session")
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AnswerResult(evaluation=evaluation, session=practice.summary())


@router.post("/sessions/{session_id}/finish", response_model=SessionSummary)
async def finish_session(session_id: str, user: UserSession = Depends(get_current_session)):
    practice = _get_session(session_id, user)
    practice.complete()
    summary = practice.summary()
    registry.remove(session_id)
    return summary


@router.get("/{subject}/weak-spots", response_model=WeakSpotAnalysis)
async def weak_spots(
    subject: str,
    user: UserSession = Depends(get_current_session),
    store: ProgressStore = Depends(get_store),
):
    return await progress_tracker.load_weak_spot_analysis(store, user, subject.lower())
