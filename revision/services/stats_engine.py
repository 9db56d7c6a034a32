"""Progress aggregation and grade prediction.

Provides pure functions over progress/attempt records:
- completion percentage, rolling accuracy, study streak
- tier-aware grade prediction and confidence level
- weak-spot ranking and analysis, improvement metrics
- compute_stats() combining all of the above for one subject
"""

import math
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional

from revision.db.progress_store import accuracy_percentage
from revision.models.progress import (
    DailyAccuracy,
    Enrollment,
    ImprovementMetrics,
    LessonProgress,
    LessonStatus,
    PracticeRecommendation,
    ProgressStats,
    QuestionAttempt,
    StudyDay,
    Tier,
    WeakSpot,
    WeakSpotAnalysis,
    WeakTopic,
)

DEFAULT_ACCURACY_WINDOW = 50
STREAK_WINDOW_DAYS = 30
STREAK_MIN_MINUTES = 10
MIN_ATTEMPTS_FOR_PREDICTION = 5
WEAKEST_TOPICS_LIMIT = 10

# (minimum accuracy, grade), checked top-down
FOUNDATION_BANDS = ((85, 5), (70, 4), (55, 3), (40, 2))
HIGHER_BANDS = ((90, 9), (85, 8), (80, 7), (70, 6), (60, 5))
FLOOR_GRADE = {Tier.FOUNDATION: 1, Tier.HIGHER: 4}


def effective_status(progress: LessonProgress) -> LessonStatus:
    """Lesson status with the no-regression rule applied.

    Once a lesson has a completion timestamp it stays completed, even if a
    late in_progress write landed on the row afterwards.
    """
    if progress.completed_at is not None:
        return LessonStatus.COMPLETED
    return progress.status


def completion_percentage(progress: Iterable[LessonProgress], total_lessons: int) -> int:
    completed = sum(1 for p in progress if effective_status(p) == LessonStatus.COMPLETED)
    return accuracy_percentage(completed, total_lessons)


def accuracy_rate(attempts: list[QuestionAttempt], window: int = DEFAULT_ACCURACY_WINDOW) -> int:
    """Accuracy over the most recent `window` attempts (attempts are newest first)."""
    recent = attempts[:window]
    correct = sum(1 for a in recent if a.is_correct)
    return accuracy_percentage(correct, len(recent))


def daily_minutes(days: Iterable[StudyDay]) -> dict[date, float]:
    """Sum study minutes per calendar day across subjects."""
    totals: dict[date, float] = {}
    for day in days:
        key = date.fromisoformat(day.study_date)
        totals[key] = totals.get(key, 0) + day.total_minutes
    return totals


def study_streak(
    minutes_by_day: Mapping[date, float],
    today: date,
    window_days: int = STREAK_WINDOW_DAYS,
    min_minutes: float = STREAK_MIN_MINUTES,
) -> int:
    """Count consecutive qualifying days back from today.

    Today counts if it qualifies but never breaks the streak, since the
    day is still in progress.
    """
    streak = 0
    for offset in range(window_days):
        day = today - timedelta(days=offset)
        if minutes_by_day.get(day, 0) >= min_minutes:
            streak += 1
        elif offset > 0:
            break
    return streak


def predict_grade(
    accuracy: int,
    total_attempts: int,
    tier: Tier,
    min_attempts: int = MIN_ATTEMPTS_FOR_PREDICTION,
) -> str:
    tier = Tier(tier)
    if total_attempts < min_attempts:
        return f"Grade {FLOOR_GRADE[tier]}"

    bands = FOUNDATION_BANDS if tier == Tier.FOUNDATION else HIGHER_BANDS
    for threshold, grade in bands:
        if accuracy >= threshold:
            return f"Grade {grade}"
    return f"Grade {FLOOR_GRADE[tier]}"


def confidence_level(total_attempts: int, accuracy: int) -> str:
    if total_attempts < MIN_ATTEMPTS_FOR_PREDICTION:
        return "Low"
    if total_attempts >= 30 and accuracy >= 75:
        return "High"
    if total_attempts >= 15 and accuracy >= 60:
        return "Medium"
    return "Low"


def rank_weak_spots(spots: Iterable[WeakSpot]) -> list[WeakSpot]:
    """Lowest accuracy first; among equals, the most-attempted first."""
    return sorted(spots, key=lambda s: (s.accuracy_percentage, -s.total_attempts))


def weak_topics(spots: Iterable[WeakSpot], limit: Optional[int] = None) -> list[WeakTopic]:
    ranked = rank_weak_spots(s for s in spots if s.needs_practice)
    if limit is not None:
        ranked = ranked[:limit]
    return [
        WeakTopic(
            topic=s.topic,
            subtopic=s.subtopic,
            accuracy=s.accuracy_percentage,
            total_questions=s.total_attempts,
            last_incorrect=s.last_incorrect_at,
        )
        for s in ranked
    ]


def weak_spot_analysis(
    spots: Iterable[WeakSpot], incorrect_attempts: Iterable[QuestionAttempt]
) -> WeakSpotAnalysis:
    """Build the weak-spot practice overview.

    incorrect_attempts should be the recent wrong answers, newest first.
    """
    ranked = rank_weak_spots(s for s in spots if s.needs_practice)

    retry: "OrderedDict[str, None]" = OrderedDict()
    for attempt in incorrect_attempts:
        retry.setdefault(attempt.question_id, None)

    return WeakSpotAnalysis(
        weakest_topics=weak_topics(ranked, limit=WEAKEST_TOPICS_LIMIT),
        questions_to_retry=list(retry)[:20],
        improvement_areas=[s.subtopic or s.topic for s in ranked[:5]],
        practice_recommendations=[
            PracticeRecommendation(
                topic=s.topic,
                # Lower accuracy -> easier recommended questions
                difficulty=max(1, math.ceil(s.accuracy_percentage / 20)),
                estimated_minutes=max(10, 30 - s.accuracy_percentage / 3),
            )
            for s in ranked[:3]
        ],
    )


def improvement_metrics(attempts: Iterable[QuestionAttempt]) -> Optional[ImprovementMetrics]:
    """Per-day accuracy series, oldest day first. None without attempts."""
    ordered = sorted(attempts, key=lambda a: a.attempted_at)
    if not ordered:
        return None

    per_day: "OrderedDict[str, list[int]]" = OrderedDict()
    for a in ordered:
        day = a.attempted_at.date().isoformat()
        counts = per_day.setdefault(day, [0, 0])
        counts[1] += 1
        if a.is_correct:
            counts[0] += 1

    daily = [
        DailyAccuracy(date=day, accuracy=correct / total * 100, questions_answered=total)
        for day, (correct, total) in per_day.items()
    ]
    correct_total = sum(1 for a in ordered if a.is_correct)
    return ImprovementMetrics(
        total_questions=len(ordered),
        overall_accuracy=correct_total / len(ordered) * 100,
        daily_progress=daily,
        is_improving=len(daily) > 1 and daily[-1].accuracy > daily[0].accuracy,
    )


def compute_stats(
    subject: str,
    attempts: list[QuestionAttempt],
    progress: list[LessonProgress],
    study_days: Iterable[StudyDay] = (),
    weak_spots: Iterable[WeakSpot] = (),
    enrollment: Optional[Enrollment] = None,
    total_lessons: Optional[int] = None,
    today: Optional[date] = None,
    accuracy_window: int = DEFAULT_ACCURACY_WINDOW,
    streak_window_days: int = STREAK_WINDOW_DAYS,
    streak_min_minutes: float = STREAK_MIN_MINUTES,
    min_attempts: int = MIN_ATTEMPTS_FOR_PREDICTION,
) -> ProgressStats:
    """Aggregate one subject's history into dashboard statistics.

    attempts must be newest first; only the most recent accuracy_window
    attempts feed accuracy and prediction. weak_spots are the stored
    per-section accuracy rows; the ones needing practice become weakest_topics.
    """
    today = today or datetime.now(timezone.utc).date()
    if total_lessons is None:
        total_lessons = len(progress)

    statuses = [effective_status(p) for p in progress]
    completed = statuses.count(LessonStatus.COMPLETED)
    in_progress = statuses.count(LessonStatus.IN_PROGRESS)

    recent = attempts[:accuracy_window]
    accuracy = accuracy_rate(recent, accuracy_window)
    correct = sum(1 for a in recent if a.is_correct)

    scores = [p.score for p in progress if p.score is not None]
    average_score = round(sum(scores) / len(scores)) if scores else 0
    total_minutes = sum(p.time_spent_minutes or 0 for p in progress)

    tier = enrollment.target_tier if enrollment else Tier.FOUNDATION
    if enrollment:
        recommended = enrollment.target_tier
    else:
        recommended = Tier.HIGHER if accuracy >= 70 else Tier.FOUNDATION

    return ProgressStats(
        subject=subject,
        total_lessons=total_lessons,
        completed_lessons=completed,
        in_progress_lessons=in_progress,
        completion_percentage=completion_percentage(progress, total_lessons),
        total_time_hours=round(total_minutes / 60, 1),
        average_score=average_score,
        questions_attempted=len(recent),
        questions_correct=correct,
        accuracy_rate=accuracy,
        streak=study_streak(daily_minutes(study_days), today, streak_window_days, streak_min_minutes),
        grade_prediction=predict_grade(accuracy, len(recent), tier, min_attempts),
        foundation_prediction=predict_grade(accuracy, len(recent), Tier.FOUNDATION, min_attempts),
        higher_prediction=predict_grade(accuracy, len(recent), Tier.HIGHER, min_attempts),
        recommended_tier=recommended,
        confidence=confidence_level(len(recent), accuracy),
        next_lesson="Course Complete" if 0 < total_lessons <= completed else f"Lesson {completed + 1}",
        weakest_topics=weak_topics(weak_spots, limit=WEAKEST_TOPICS_LIMIT),
    )
