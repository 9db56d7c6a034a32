"""Tests for ProgressStore against an in-memory SQLite database."""

from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import run_with_store
from revision.db.progress_store import ProgressStore, accuracy_percentage
from revision.errors import StoreReadFailed, StoreWriteFailed
from revision.models.progress import EnrollmentStatus, LessonStatus, QuestionAttempt, Tier

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_attempt(user_id="user-1", subject="maths", qid="bidmas-1", correct=True, when=NOW, subtopic="Basics"):
    return QuestionAttempt(
        user_id=user_id, subject=subject, question_id=qid, topic="bidmas", subtopic=subtopic,
        user_answer="4", is_correct=correct, time_taken_seconds=30, attempted_at=when,
    )


def test_accuracy_percentage():
    assert accuracy_percentage(0, 0) == 0
    assert accuracy_percentage(1, 3) == 33
    assert accuracy_percentage(2, 3) == 67
    assert accuracy_percentage(5, 4) == 100


class TestEnrollments:

    def test_create_get_update(self):
        async def scenario(store):
            await store.create_enrollment("user-1", "Maths", "Higher", "Grade 7")
            await store.update_enrollment_target("user-1", "maths", "Foundation", "Grade 5")
            await store.update_enrollment_status("user-1", "maths", "paused")
            return await store.get_enrollment("user-1", "MATHS"), await store.list_enrollments("user-2")

        enrollment, others = run_with_store(scenario)
        assert enrollment.subject == "maths"
        assert enrollment.target_tier == Tier.FOUNDATION
        assert enrollment.target_grade == "Grade 5"
        assert enrollment.status == EnrollmentStatus.PAUSED
        assert others == []

    def test_duplicate_enrollment_fails(self):
        async def scenario(store):
            await store.create_enrollment("user-1", "maths")
            with pytest.raises(StoreWriteFailed):
                await store.create_enrollment("user-1", "maths")
            return await store.list_enrollments("user-1")

        assert len(run_with_store(scenario)) == 1

    def test_unenroll_removes_subject_data_only(self):
        async def scenario(store):
            for subject in ("maths", "english"):
                await store.create_enrollment("user-1", subject)
                await store.record_question_attempt(make_attempt(subject=subject))
                await store.add_study_time("user-1", subject, 15, on_date=NOW.date())
            await store.upsert_lesson_progress("user-1", "maths", 1, status="completed")
            await store.apply_attempt_to_weak_spot("user-1", "maths", "bidmas", "", False, NOW, 70)

            removed = await store.delete_enrollment("user-1", "maths")
            remaining = await store.list_enrollments("user-1")
            english_attempts = await store.count_question_attempts("user-1", "english")
            maths_attempts = await store.count_question_attempts("user-1", "maths")
            return removed, remaining, english_attempts, maths_attempts

        removed, remaining, english_attempts, maths_attempts = run_with_store(scenario)
        assert removed == {
            "question_attempts": 1, "weak_spots": 1, "lesson_progress": 1,
            "study_sessions": 1, "enrollments": 1,
        }
        assert [e.subject for e in remaining] == ["english"]
        assert english_attempts == 1
        assert maths_attempts == 0


class TestLessonProgress:

    def test_partial_upsert_keeps_other_columns(self):
        async def scenario(store):
            await store.upsert_lesson_progress(
                "user-1", "maths", 1, status="completed", score=90,
                completed_at=NOW.isoformat(),
            )
            await store.upsert_lesson_progress("user-1", "maths", 1, status="in_progress")
            return await store.get_lesson_progress("user-1", "maths", 1)

        progress = run_with_store(scenario)
        assert progress.status == LessonStatus.IN_PROGRESS
        assert progress.score == 90
        assert progress.completed_at == NOW

    def test_unknown_field_rejected(self):
        async def scenario(store):
            await store.upsert_lesson_progress("user-1", "maths", 1, colour="red")

        with pytest.raises(StoreWriteFailed):
            run_with_store(scenario)


class TestQuestionAttempts:

    def test_newest_first_with_filters(self):
        async def scenario(store):
            for i in range(5):
                await store.record_question_attempt(make_attempt(
                    qid=f"bidmas-{i}", correct=i % 2 == 0, when=NOW - timedelta(days=i * 10),
                ))
            all_attempts = await store.list_question_attempts("user-1", "maths", limit=None)
            recent = await store.list_question_attempts("user-1", "maths", since=NOW - timedelta(days=25))
            wrong = await store.list_question_attempts("user-1", "maths", incorrect_only=True)
            limited = await store.list_question_attempts("user-1", "maths", limit=2)
            return all_attempts, recent, wrong, limited

        all_attempts, recent, wrong, limited = run_with_store(scenario)
        assert [a.question_id for a in all_attempts] == [f"bidmas-{i}" for i in range(5)]
        assert [a.question_id for a in recent] == ["bidmas-0", "bidmas-1", "bidmas-2"]
        assert [a.question_id for a in wrong] == ["bidmas-1", "bidmas-3"]
        assert len(limited) == 2
        assert all_attempts[0].attempted_at == NOW


class TestWeakSpots:

    def test_incremental_accuracy(self):
        async def scenario(store):
            for correct in (False, False, True, True, True):
                spot = await store.apply_attempt_to_weak_spot(
                    "user-1", "maths", "bidmas", "Indices", correct, NOW, threshold=70,
                )
            flagged = await store.list_weak_spots("user-1", "maths")
            every = await store.list_weak_spots("user-1", "maths", needs_practice_only=False)
            return spot, flagged, every

        spot, flagged, every = run_with_store(scenario)
        assert spot.total_attempts == 5
        assert spot.correct_attempts == 3
        assert spot.accuracy_percentage == 60
        assert spot.needs_practice is True
        assert spot.last_incorrect_at == NOW
        assert len(flagged) == 1
        assert every[0].subtopic == "Indices"

    def test_recovers_above_threshold(self):
        async def scenario(store):
            await store.apply_attempt_to_weak_spot("user-1", "maths", "bidmas", "", False, NOW, 70)
            for _ in range(3):
                await store.apply_attempt_to_weak_spot("user-1", "maths", "bidmas", "", True, NOW, 70)
            return await store.list_weak_spots("user-1", "maths")

        assert run_with_store(scenario) == []


class TestStudySessions:

    def test_minutes_accumulate_per_day(self):
        async def scenario(store):
            today = date(2026, 3, 10)
            await store.add_study_time("user-1", "maths", 4, questions_answered=1, on_date=today)
            await store.add_study_time("user-1", "maths", 7.5, lessons_completed=1, on_date=today)
            await store.add_study_time("user-1", "english", 3, on_date=today)
            await store.add_study_time("user-1", "maths", 20, on_date=today - timedelta(days=40))
            return (
                await store.list_study_days("user-1", since=today - timedelta(days=30)),
                await store.list_study_days("user-1", since=today - timedelta(days=30), subject="maths"),
            )

        days, maths_days = run_with_store(scenario)
        assert len(days) == 2
        assert len(maths_days) == 1
        assert maths_days[0].total_minutes == pytest.approx(11.5)
        assert maths_days[0].lessons_completed == 1
        assert maths_days[0].questions_answered == 1


def test_read_failure_is_wrapped():
    class BrokenConnection:
        async def execute(self, *args):
            raise RuntimeError("connection reset")

    import asyncio
    with pytest.raises(StoreReadFailed):
        asyncio.run(ProgressStore(BrokenConnection()).list_enrollments("user-1"))
