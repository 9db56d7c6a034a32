"""Tests for difficulty-weighted question selection."""

import random
from collections import Counter

import pytest

from revision.models.practice import Difficulty, PracticeMode, Question, QuestionBank
from revision.models.progress import WeakSpot
from revision.services.question_selector import (
    bucket_quotas,
    fisher_yates,
    select_questions,
    session_length,
)

ORDER = {Difficulty.EASY: 0, Difficulty.MEDIUM: 1, Difficulty.HARD: 2}


def make_bank(easy=10, medium=10, hard=10, topic="bidmas"):
    questions = []
    answers = {}
    next_id = 1
    for difficulty, n, section in (
        (Difficulty.EASY, easy, "Basics"),
        (Difficulty.MEDIUM, medium, "Indices"),
        (Difficulty.HARD, hard, "Multi-step"),
    ):
        for _ in range(n):
            q = Question(
                id=next_id, topic=topic, question_text=f"q{next_id}",
                difficulty=difficulty, subtopic=section,
            )
            questions.append(q)
            answers[q.key] = next_id
            next_id += 1
    return QuestionBank(subject="maths", questions=questions, answers=answers)


def difficulty_counts(questions):
    return Counter(q.difficulty for q in questions)


class TestQuotas:

    def test_ten_from_a_full_bank(self):
        quotas = bucket_quotas(10, {Difficulty.EASY: 10, Difficulty.MEDIUM: 10, Difficulty.HARD: 10})
        assert quotas == {Difficulty.EASY: 4, Difficulty.MEDIUM: 4, Difficulty.HARD: 2}

    def test_odd_count_rounds_easy_and_medium_up(self):
        quotas = bucket_quotas(7, {Difficulty.EASY: 10, Difficulty.MEDIUM: 10, Difficulty.HARD: 10})
        assert quotas == {Difficulty.EASY: 3, Difficulty.MEDIUM: 3, Difficulty.HARD: 1}

    def test_small_counts_never_exceed_count(self):
        full = {Difficulty.EASY: 10, Difficulty.MEDIUM: 10, Difficulty.HARD: 10}
        assert bucket_quotas(1, full) == {Difficulty.EASY: 1, Difficulty.MEDIUM: 0, Difficulty.HARD: 0}
        assert bucket_quotas(2, full) == {Difficulty.EASY: 1, Difficulty.MEDIUM: 1, Difficulty.HARD: 0}
        assert bucket_quotas(3, full) == {Difficulty.EASY: 2, Difficulty.MEDIUM: 1, Difficulty.HARD: 0}

    def test_zero_or_negative_count(self):
        assert sum(bucket_quotas(0, {d: 5 for d in Difficulty}).values()) == 0
        assert sum(bucket_quotas(-3, {d: 5 for d in Difficulty}).values()) == 0

    def test_shortfall_backfilled_from_medium_then_easy(self):
        quotas = bucket_quotas(10, {Difficulty.EASY: 10, Difficulty.MEDIUM: 5, Difficulty.HARD: 0})
        assert quotas[Difficulty.HARD] == 0
        assert quotas[Difficulty.MEDIUM] == 5
        assert quotas[Difficulty.EASY] == 5
        assert sum(quotas.values()) == 10


class TestSelectQuestions:

    def test_forty_forty_twenty_mix_in_order(self):
        selected = select_questions(make_bank(), 10, rng=random.Random(1))
        counts = difficulty_counts(selected)
        assert counts[Difficulty.EASY] == 4
        assert counts[Difficulty.MEDIUM] == 4
        assert counts[Difficulty.HARD] == 2
        ranks = [ORDER[q.difficulty] for q in selected]
        assert ranks == sorted(ranks)

    def test_no_duplicates(self):
        selected = select_questions(make_bank(), 10, rng=random.Random(3))
        assert len({q.key for q in selected}) == len(selected)

    @pytest.mark.parametrize("easy,medium,hard,count", [
        (2, 2, 0, 10),
        (0, 0, 3, 10),
        (1, 0, 9, 5),
        (3, 3, 3, 9),
    ])
    def test_length_is_min_of_count_and_pool(self, easy, medium, hard, count):
        bank = make_bank(easy, medium, hard)
        selected = select_questions(bank, count, rng=random.Random(0))
        assert len(selected) == min(count, easy + medium + hard)
        ranks = [ORDER[q.difficulty] for q in selected]
        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("count", range(1, 21))
    @pytest.mark.parametrize("sizes", [(10, 10, 10), (3, 2, 1), (0, 4, 4), (5, 0, 0)])
    def test_every_count_gives_min_of_count_and_pool(self, count, sizes):
        selected = select_questions(make_bank(*sizes), count, rng=random.Random(count))
        assert len(selected) == min(count, sum(sizes))
        assert len({q.key for q in selected}) == len(selected)
        ranks = [ORDER[q.difficulty] for q in selected]
        assert ranks == sorted(ranks)

    def test_hard_only_bank(self):
        selected = select_questions(make_bank(0, 0, 3), 10, rng=random.Random(0))
        assert len(selected) == 3
        assert all(q.difficulty == Difficulty.HARD for q in selected)

    def test_empty_bank(self):
        assert select_questions(make_bank(0, 0, 0), 10) == []

    def test_timed_mode_doubles_length(self):
        assert session_length(10, PracticeMode.TIMED) == 20
        selected = select_questions(make_bank(), 10, mode=PracticeMode.TIMED, rng=random.Random(0))
        assert len(selected) == 20

    def test_selection_varies_with_seed(self):
        bank = make_bank(20, 20, 20)
        picks = {
            tuple(q.key for q in select_questions(bank, 10, rng=random.Random(seed)))
            for seed in range(5)
        }
        assert len(picks) > 1

    def test_weak_spot_mode_limits_pool(self):
        spots = [WeakSpot(
            user_id="u", subject="maths", topic="bidmas", subtopic="Indices",
            total_attempts=4, correct_attempts=1, accuracy_percentage=25, needs_practice=True,
        )]
        selected = select_questions(
            make_bank(), 10, mode=PracticeMode.WEAK_SPOT, rng=random.Random(0), weak_spots=spots,
        )
        assert selected
        assert all(q.subtopic == "Indices" for q in selected)

    def test_weak_spot_mode_without_flagged_topics(self):
        assert select_questions(make_bank(), 10, mode=PracticeMode.WEAK_SPOT, weak_spots=[]) == []


def test_fisher_yates_is_a_permutation():
    items = list(range(20))
    shuffled = fisher_yates(items, random.Random(42))
    assert sorted(shuffled) == items
    assert items == list(range(20))
