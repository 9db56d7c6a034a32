"""Difficulty-weighted practice question selection.

A session draws 40% Easy, 40% Medium and the rest Hard. Each difficulty
bucket is shuffled on its own and the result is returned grouped
Easy → Medium → Hard, so a session always ramps up in difficulty while the
individual questions vary from one session to the next.
"""

import logging
import math
import random
from typing import Iterable, Optional

from revision.models.practice import DIFFICULTY_ORDER, Difficulty, PracticeMode, Question, QuestionBank
from revision.models.progress import WeakSpot

logger = logging.getLogger(__name__)

EASY_SHARE = 0.4
MEDIUM_SHARE = 0.4
TIMED_MULTIPLIER = 2


def session_length(count: int, mode: PracticeMode) -> int:
    """Timed sessions ask twice as many questions (10 -> 20)."""
    if mode == PracticeMode.TIMED:
        return count * TIMED_MULTIPLIER
    return count


def fisher_yates(items: list, rng: random.Random) -> list:
    """Return a shuffled copy of items."""
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def partition_by_difficulty(questions: Iterable[Question]) -> dict[Difficulty, list[Question]]:
    buckets: dict[Difficulty, list[Question]] = {d: [] for d in DIFFICULTY_ORDER}
    for question in questions:
        buckets[question.difficulty].append(question)
    return buckets


def bucket_quotas(count: int, available: dict[Difficulty, int]) -> dict[Difficulty, int]:
    """How many questions to take from each difficulty.

    Easy and Medium get ceil(40%) each, clamped to what exists and to what
    is left of count (Easy first). Hard takes the remainder, clamped to
    [0, available]. Any shortfall left after that is filled from the
    leftover Medium, then Easy questions.
    """
    if count <= 0:
        return {d: 0 for d in DIFFICULTY_ORDER}

    easy = min(math.ceil(count * EASY_SHARE), available[Difficulty.EASY], count)
    medium = min(math.ceil(count * MEDIUM_SHARE), available[Difficulty.MEDIUM], count - easy)
    hard = max(0, min(count - easy - medium, available[Difficulty.HARD]))
    quotas = {Difficulty.EASY: easy, Difficulty.MEDIUM: medium, Difficulty.HARD: hard}

    shortfall = min(count, sum(available.values())) - sum(quotas.values())
    for difficulty in (Difficulty.MEDIUM, Difficulty.EASY):
        if shortfall <= 0:
            break
        extra = min(shortfall, available[difficulty] - quotas[difficulty])
        quotas[difficulty] += extra
        shortfall -= extra

    return quotas


def weak_spot_pool(questions: Iterable[Question], weak_spots: Iterable[WeakSpot]) -> list[Question]:
    """Questions whose topic (and subtopic, when named) needs practice."""
    flagged_topics = set()
    flagged_sections = set()
    for spot in weak_spots:
        if not spot.needs_practice:
            continue
        if spot.subtopic:
            flagged_sections.add((spot.topic, spot.subtopic))
        else:
            flagged_topics.add(spot.topic)

    return [
        q for q in questions
        if q.topic in flagged_topics or (q.topic, q.subtopic) in flagged_sections
    ]


def select_questions(
    bank: QuestionBank,
    count: int,
    mode: PracticeMode = PracticeMode.NORMAL,
    rng: Optional[random.Random] = None,
    weak_spots: Optional[Iterable[WeakSpot]] = None,
) -> list[Question]:
    """Pick the questions for one practice session.

    Returns min(n, pool size) questions grouped by ascending difficulty, where
    n is count (doubled for timed mode). In weak-spot mode the pool is
    limited to topics flagged as needing practice.
    """
    rng = rng or random.Random()
    mode = PracticeMode(mode)
    target = session_length(count, mode)

    pool = bank.questions
    if mode == PracticeMode.WEAK_SPOT:
        pool = weak_spot_pool(pool, weak_spots or [])
        if not pool:
            logger.info(f"No weak-spot questions available for {bank.subject}")
            return []

    buckets = partition_by_difficulty(pool)
    quotas = bucket_quotas(target, {d: len(qs) for d, qs in buckets.items()})

    selected: list[Question] = []
    for difficulty in DIFFICULTY_ORDER:
        selected.extend(fisher_yates(buckets[difficulty], rng)[:quotas[difficulty]])

    logger.debug(
        "Selected %d/%d questions (%s) for %s",
        len(selected), target, {d.value: n for d, n in quotas.items()}, bank.subject,
    )
    return selected
