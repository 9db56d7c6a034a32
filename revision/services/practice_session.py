"""In-process practice sessions.

A session holds the questions chosen by the selector, the answers given so
far and, for timed mode, a Countdown that ticks once a second and closes the
session when it runs out. Nothing here is persisted; each answer is recorded
through attempt_evaluator as it is submitted.
"""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from revision.db.progress_store import ProgressStore, accuracy_percentage
from revision.errors import RevisionError
from revision.models.practice import (
    Evaluation,
    PracticeMode,
    PublicQuestion,
    Question,
    QuestionBank,
    SessionEntry,
    SessionSummary,
)
from revision.routes.auth import UserSession
from revision.services.attempt_evaluator import record_attempt

logger = logging.getLogger(__name__)


class SessionClosed(RevisionError):
    """The session was finished or its time ran out."""


class QuestionNotInSession(RevisionError):
    pass


class AlreadyAnswered(RevisionError):
    pass


class Countdown:
    """Wall-clock countdown ticking every `tick` seconds.

    Calls on_expire once when the remaining time reaches zero. Must be
    started from inside a running event loop.
    """

    def __init__(self, seconds: int, on_expire: Callable[[], None], tick: float = 1.0):
        self.total = seconds
        self.remaining = seconds
        self.tick = tick
        self._on_expire = on_expire
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while self.remaining > 0:
            await asyncio.sleep(self.tick)
            self.remaining -= 1
        self._on_expire()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    @property
    def expired(self) -> bool:
        return self.remaining <= 0

    @property
    def elapsed(self) -> int:
        return self.total - max(0, self.remaining)


class PracticeSession:
    def __init__(
        self,
        user_id: str,
        bank: QuestionBank,
        questions: list[Question],
        mode: PracticeMode = PracticeMode.NORMAL,
        time_limit_seconds: Optional[int] = None,
        tick: float = 1.0,
    ):
        self.id = uuid.uuid4().hex
        self.user_id = user_id
        self.subject = bank.subject
        self.mode = PracticeMode(mode)
        self.questions = questions
        self.answers = {q.key: bank.answers[q.key] for q in questions}
        self.entries: list[SessionEntry] = []
        self.started_at = datetime.now(timezone.utc)
        self.completed = False
        self.time_up = False
        self._last_mark = time.monotonic()

        self.countdown: Optional[Countdown] = None
        if self.mode == PracticeMode.TIMED and time_limit_seconds:
            self.countdown = Countdown(time_limit_seconds, self._expire, tick=tick)

    def start(self) -> None:
        if self.countdown is not None:
            self.countdown.start()
        if not self.questions:
            self.complete()

    def _expire(self) -> None:
        logger.info(f"Timed session {self.id} ran out of time")
        self.time_up = True
        self.complete()

    def complete(self) -> None:
        self.completed = True
        if self.countdown is not None:
            self.countdown.cancel()

    def public_questions(self) -> list[PublicQuestion]:
        return [
            PublicQuestion(
                key=q.key,
                id=q.id,
                topic=q.topic,
                subtopic=q.subtopic,
                difficulty=q.difficulty,
                question_text=q.question_text,
            )
            for q in self.questions
        ]

    def _question(self, key: str) -> Question:
        for q in self.questions:
            if q.key == key:
                return q
        raise QuestionNotInSession(key)

    async def submit(
        self,
        store: ProgressStore,
        session: UserSession,
        question_key: str,
        answer: str,
        time_taken_seconds: Optional[int] = None,
    ) -> Evaluation:
        if self.completed or (self.countdown is not None and self.countdown.expired):
            raise SessionClosed(self.id)
        question = self._question(question_key)
        if any(e.question_key == question_key for e in self.entries):
            raise AlreadyAnswered(question_key)

        now = time.monotonic()
        if time_taken_seconds is None:
            time_taken_seconds = round(now - self._last_mark)
        time_taken_seconds = max(0, time_taken_seconds)
        self._last_mark = now

        result = await record_attempt(
            store,
            session,
            self.subject,
            question,
            self.answers[question.key],
            answer,
            time_taken_seconds=time_taken_seconds,
            practice_type=self.mode.value if self.mode != PracticeMode.NORMAL else "practice",
        )
        # Time may have run out while the attempt was being recorded
        if self.completed:
            raise SessionClosed(self.id)

        self.entries.append(
            SessionEntry(
                question_key=question.key,
                user_answer=result.submitted_answer,
                canonical_answer=result.canonical_answer,
                is_correct=result.is_correct,
                time_taken_seconds=time_taken_seconds,
            )
        )
        if len(self.entries) >= len(self.questions):
            self.complete()
        return result

    def summary(self) -> SessionSummary:
        correct = sum(1 for e in self.entries if e.is_correct)
        return SessionSummary(
            session_id=self.id,
            subject=self.subject,
            mode=self.mode,
            total_questions=len(self.questions),
            answered=len(self.entries),
            correct=correct,
            percentage=accuracy_percentage(correct, len(self.entries)),
            completed=self.completed,
            time_up=self.time_up,
            time_limit_seconds=self.countdown.total if self.countdown else None,
            time_remaining_seconds=max(0, self.countdown.remaining) if self.countdown else None,
            entries=list(self.entries) if self.completed else [],
        )


class SessionRegistry:
    """Live sessions, keyed by id and owned by one user each."""

    def __init__(self, max_age: timedelta = timedelta(hours=2)):
        self._sessions: dict[str, PracticeSession] = {}
        self.max_age = max_age

    def add(self, practice: PracticeSession) -> PracticeSession:
        self.prune()
        self._sessions[practice.id] = practice
        return practice

    def get(self, session_id: str, user_id: str) -> Optional[PracticeSession]:
        practice = self._sessions.get(session_id)
        if practice is None or practice.user_id != user_id:
            return None
        return practice

    def remove(self, session_id: str) -> None:
        practice = self._sessions.pop(session_id, None)
        if practice is not None:
            practice.complete()

    def prune(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.max_age
        for session_id in [s.id for s in self._sessions.values() if s.started_at < cutoff]:
            self.remove(session_id)

    def __len__(self) -> int:
        return len(self._sessions)


registry = SessionRegistry()
