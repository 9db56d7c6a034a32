"""Tests for the store-backed progress reads and their fallbacks."""

import asyncio
from datetime import date

import aiosqlite

from conftest import run_with_store
from revision.db.progress_store import ProgressStore
from revision.models.lesson import LessonMeta
from revision.models.practice import Difficulty, Question
from revision.models.progress import WeakSpotAnalysis
from revision.services import progress_tracker
from revision.services.attempt_evaluator import record_attempt

TODAY = date(2026, 3, 10)

QUESTION = Question(
    id=3, topic="bidmas", question_text="2 + 3 × 4",
    difficulty=Difficulty.EASY, subtopic="Order of Operations",
)

LESSONS = [
    LessonMeta(id=1, number="001", slug="bidmas", title="BIDMAS"),
    LessonMeta(id=2, number="002", slug="negative-numbers", title="Negatives", prerequisites=[1]),
]


def with_broken_store(scenario):
    """Run scenario(store) against a connection that has no tables, so every read fails."""
    async def runner():
        db = await aiosqlite.connect(":memory:")
        db.row_factory = aiosqlite.Row
        try:
            return await scenario(ProgressStore(db))
        finally:
            await db.close()
    return asyncio.run(runner())


class TestReadFallbacks:

    def test_stats_degrade_to_defaults(self, user):
        stats = with_broken_store(
            lambda store: progress_tracker.load_stats(store, user, "maths", total_lessons=5, today=TODAY)
        )
        assert stats.degraded is True
        assert stats.subject == "maths"
        assert stats.accuracy_rate == 0
        assert stats.questions_attempted == 0
        assert stats.grade_prediction == "Grade 1"
        assert stats.weakest_topics == []

    def test_weak_spot_analysis_is_empty(self, user):
        analysis = with_broken_store(
            lambda store: progress_tracker.load_weak_spot_analysis(store, user, "maths")
        )
        assert analysis == WeakSpotAnalysis()

    def test_streak_is_zero(self, user):
        streak = with_broken_store(lambda store: progress_tracker.overall_streak(store, user, today=TODAY))
        assert streak == 0

    def test_improvement_is_none(self, user):
        assert with_broken_store(lambda store: progress_tracker.load_improvement(store, user, "maths")) is None

    def test_lesson_list_shows_everything_not_started(self, user):
        listing = with_broken_store(
            lambda store: progress_tracker.list_lessons(store, user, "maths", LESSONS)
        )
        assert listing.completed_lessons == 0
        assert {o.status for o in listing.lessons} == {"not_started"}
        assert [o.locked for o in listing.lessons] == [False, True]


class TestStats:

    def test_healthy_store_is_not_degraded(self, user):
        stats = run_with_store(
            lambda store: progress_tracker.load_stats(store, user, "maths", total_lessons=5, today=TODAY)
        )
        assert stats.degraded is False
        assert stats.total_lessons == 5

    def test_wrong_answer_shows_in_stats_and_weak_spots(self, user):
        async def scenario(store):
            await record_attempt(store, user, "maths", QUESTION, 14, "20")
            stats = await progress_tracker.load_stats(store, user, "maths", today=TODAY)
            analysis = await progress_tracker.load_weak_spot_analysis(store, user, "maths")
            return stats, analysis

        stats, analysis = run_with_store(scenario)
        assert [(t.topic, t.subtopic) for t in stats.weakest_topics] == [("bidmas", "Order of Operations")]
        assert stats.weakest_topics == analysis.weakest_topics
