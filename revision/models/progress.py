from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, field_validator


class Tier(str, Enum):
    FOUNDATION = "Foundation"
    HIGHER = "Higher"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class LessonStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Enrollment(BaseModel):
    id: Optional[int] = None
    user_id: str
    subject: str
    enrolled_at: Optional[datetime] = None
    target_tier: Tier = Tier.FOUNDATION
    target_grade: Optional[str] = None
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE


class LessonProgress(BaseModel):
    user_id: str
    subject: str
    lesson_id: int
    lesson_slug: Optional[str] = None
    status: LessonStatus = LessonStatus.NOT_STARTED
    score: Optional[float] = None
    time_spent_minutes: float = 0
    attempts: int = 0
    completed_at: Optional[datetime] = None


class QuestionAttempt(BaseModel):
    user_id: str
    subject: str
    question_id: str
    topic: str
    subtopic: str = ""
    user_answer: str
    is_correct: bool
    time_taken_seconds: int = 0
    attempted_at: datetime
    practice_type: str = "practice"


class WeakSpot(BaseModel):
    user_id: str
    subject: str
    topic: str
    subtopic: str = ""
    total_attempts: int = 0
    correct_attempts: int = 0
    accuracy_percentage: int = 0
    needs_practice: bool = False
    last_incorrect_at: Optional[datetime] = None


class StudyDay(BaseModel):
    user_id: str
    subject: str
    study_date: str
    total_minutes: float = 0
    lessons_completed: int = 0
    questions_answered: int = 0


# ── Requests ─────────────────────────────────────────────────────────

GRADE_RANGES = {Tier.FOUNDATION: range(1, 6), Tier.HIGHER: range(4, 10)}


def default_target_grade(tier: Tier) -> str:
    return "Grade 5" if tier == Tier.FOUNDATION else "Grade 7"


class EnrollRequest(BaseModel):
    subject: str
    target_tier: Tier = Tier.FOUNDATION
    target_grade: Optional[str] = None

    @field_validator("subject")
    @classmethod
    def subject_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Subject must not be empty")
        return v.strip().lower()


class TargetUpdate(BaseModel):
    target_tier: Tier
    target_grade: Optional[str] = None


class StatusUpdate(BaseModel):
    status: EnrollmentStatus


class LessonCompletion(BaseModel):
    score: float = 100
    time_spent_minutes: float = 0


# ── Aggregates ───────────────────────────────────────────────────────

class WeakTopic(BaseModel):
    topic: str
    subtopic: str = ""
    accuracy: int
    total_questions: int
    last_incorrect: Optional[datetime] = None


class PracticeRecommendation(BaseModel):
    topic: str
    difficulty: int
    estimated_minutes: float


class WeakSpotAnalysis(BaseModel):
    weakest_topics: list[WeakTopic] = []
    questions_to_retry: list[str] = []
    improvement_areas: list[str] = []
    practice_recommendations: list[PracticeRecommendation] = []


class DailyAccuracy(BaseModel):
    date: str
    accuracy: float
    questions_answered: int


class ImprovementMetrics(BaseModel):
    total_questions: int
    overall_accuracy: float
    daily_progress: list[DailyAccuracy]
    is_improving: bool


class ProgressStats(BaseModel):
    subject: str = ""
    total_lessons: int = 0
    completed_lessons: int = 0
    in_progress_lessons: int = 0
    completion_percentage: int = 0
    total_time_hours: float = 0.0
    average_score: int = 0
    questions_attempted: int = 0
    questions_correct: int = 0
    accuracy_rate: int = 0
    streak: int = 0
    grade_prediction: str = "Grade 1"
    foundation_prediction: str = "Grade 1"
    higher_prediction: str = "Grade 4"
    recommended_tier: Tier = Tier.FOUNDATION
    confidence: str = "Low"
    next_lesson: str = "Lesson 1"
    weakest_topics: list[WeakTopic] = []
    degraded: bool = False


class DashboardResponse(BaseModel):
    enrollments: list[Enrollment] = []
    stats: dict[str, ProgressStats] = {}
    streak: int = 0
