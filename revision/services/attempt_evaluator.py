"""
attempt_evaluator.py - Answer checking and attempt recording

Provides:
- evaluate(canonical_answer, submitted) - exact-match check of one answer
- record_attempt(store, session, question, ...) - evaluate, then log the
  attempt, update the topic's accuracy row and today's study time

Answers are compared as text after trimming the submitted value. There is
no numeric tolerance: "4.0" does not match a canonical 4.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from revision.config import settings
from revision.db.progress_store import ProgressStore
from revision.errors import StoreWriteFailed, ValidationError
from revision.models.practice import CanonicalAnswer, Evaluation, Question
from revision.models.progress import QuestionAttempt
from revision.routes.auth import UserSession

logger = logging.getLogger(__name__)


def canonical_text(answer: CanonicalAnswer) -> str:
    """Render a canonical answer the way it is shown to (and typed by) students.

    Integral numbers print without a decimal point, so an answer key
    holding 4 or 4.0 both read "4".
    """
    if isinstance(answer, bool):
        return "true" if answer else "false"
    if isinstance(answer, float) and answer.is_integer():
        return str(int(answer))
    return str(answer)


def evaluate(canonical_answer: CanonicalAnswer, submitted: str) -> Evaluation:
    """Check one answer. Raises ValidationError for an empty submission."""
    trimmed = (submitted or "").strip()
    if not trimmed:
        raise ValidationError("Answer must not be empty")

    expected = canonical_text(canonical_answer)
    return Evaluation(
        is_correct=trimmed == expected,
        canonical_answer=expected,
        submitted_answer=trimmed,
    )


async def record_attempt(
    store: ProgressStore,
    session: UserSession,
    subject: str,
    question: Question,
    canonical_answer: CanonicalAnswer,
    submitted: str,
    time_taken_seconds: int = 0,
    practice_type: str = "practice",
    attempted_at: Optional[datetime] = None,
) -> Evaluation:
    """Evaluate an answer and persist the outcome.

    Store faults are logged and dropped: the evaluation is returned either
    way so the practice session can carry on.
    """
    result = evaluate(canonical_answer, submitted)
    attempted_at = attempted_at or datetime.now(timezone.utc)

    attempt = QuestionAttempt(
        user_id=session.user_id,
        subject=subject,
        question_id=question.key,
        topic=question.topic,
        subtopic=question.subtopic,
        user_answer=result.submitted_answer,
        is_correct=result.is_correct,
        time_taken_seconds=max(0, time_taken_seconds),
        attempted_at=attempted_at,
        practice_type=practice_type,
    )

    try:
        await store.record_question_attempt(attempt)
        await store.apply_attempt_to_weak_spot(
            session.user_id,
            subject,
            question.topic,
            question.subtopic,
            result.is_correct,
            attempted_at,
            threshold=settings.weak_spot_threshold,
        )
        await store.add_study_time(
            session.user_id,
            subject,
            minutes=attempt.time_taken_seconds / 60,
            questions_answered=1,
            on_date=attempted_at.date(),
        )
    except StoreWriteFailed as e:
        logger.warning(f"Attempt on {question.key} for user {session.user_id} not saved: {e}")

    return result
