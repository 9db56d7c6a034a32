"""Tests for answer checking and attempt recording."""

import asyncio
from datetime import datetime, timezone

import pytest

from conftest import run_with_store
from revision.errors import StoreWriteFailed, ValidationError
from revision.models.practice import Difficulty, Question
from revision.services.attempt_evaluator import canonical_text, evaluate, record_attempt

QUESTION = Question(
    id=7, topic="bidmas", question_text="3² + 4 × 2",
    difficulty=Difficulty.MEDIUM, subtopic="Indices and Brackets",
)


class TestEvaluate:

    def test_integer_answer_matches_text(self):
        assert evaluate(4, "4").is_correct is True

    def test_surrounding_whitespace_ignored(self):
        result = evaluate(4, "  4 ")
        assert result.is_correct is True
        assert result.submitted_answer == "4"

    def test_decimal_form_of_integer_is_wrong(self):
        result = evaluate(4, "4.0")
        assert result.is_correct is False
        assert result.canonical_answer == "4"

    def test_decimal_answer(self):
        assert evaluate(3.5, "3.5").is_correct is True
        assert evaluate(3.5, "3.50").is_correct is False

    def test_string_answer_is_exact(self):
        assert evaluate("x = 2", "x = 2").is_correct is True
        assert evaluate("x = 2", "x=2").is_correct is False

    @pytest.mark.parametrize("submitted", ["", "   ", None])
    def test_empty_answer_rejected(self, submitted):
        with pytest.raises(ValidationError):
            evaluate(4, submitted)

    def test_canonical_text(self):
        assert canonical_text(4) == "4"
        assert canonical_text(4.0) == "4"
        assert canonical_text(-2.5) == "-2.5"
        assert canonical_text("1/2") == "1/2"


class TestRecordAttempt:

    def test_records_attempt_weak_spot_and_study_time(self, user):
        when = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)

        async def scenario(store):
            result = await record_attempt(
                store, user, "maths", QUESTION, 17, "16",
                time_taken_seconds=90, attempted_at=when,
            )
            attempts = await store.list_question_attempts(user.user_id, "maths")
            spots = await store.list_weak_spots(user.user_id, "maths")
            days = await store.list_study_days(user.user_id, since=when.date())
            return result, attempts, spots, days

        result, attempts, spots, days = run_with_store(scenario)

        assert result.is_correct is False
        assert len(attempts) == 1
        assert attempts[0].question_id == "bidmas-7"
        assert attempts[0].subtopic == "Indices and Brackets"
        assert attempts[0].is_correct is False
        assert len(spots) == 1
        assert spots[0].accuracy_percentage == 0
        assert spots[0].needs_practice is True
        assert days[0].questions_answered == 1
        assert days[0].total_minutes == pytest.approx(1.5)

    def test_empty_answer_not_recorded(self, user):
        async def scenario(store):
            with pytest.raises(ValidationError):
                await record_attempt(store, user, "maths", QUESTION, 17, " ")
            return await store.count_question_attempts(user.user_id, "maths")

        assert run_with_store(scenario) == 0

    def test_store_failure_still_returns_result(self, user):
        class FailingStore:
            async def record_question_attempt(self, attempt):
                raise StoreWriteFailed("disk full")

        result = asyncio.run(record_attempt(FailingStore(), user, "maths", QUESTION, 17, "17"))
        assert result.is_correct is True
