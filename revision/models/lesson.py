from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class LessonMeta(BaseModel):
    """One entry of a subject's lessons.json manifest."""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    number: str
    slug: str
    title: str
    category: str = ""
    tier: str = ""
    difficulty: str = ""
    is_free: bool = Field(False, alias="isFree")
    estimated_minutes: int = Field(0, alias="estimatedMinutes")
    prerequisites: list[int] = []
    topics_covered: list[str] = Field([], alias="topicsCovered")
    content_ready: bool = Field(False, alias="contentReady")


class LessonScreen(BaseModel):
    title: str
    content: str


class LessonContent(BaseModel):
    metadata: dict = {}
    screens: list[LessonScreen] = []


class LessonOverview(BaseModel):
    lesson: LessonMeta
    status: str = "not_started"
    score: Optional[float] = None
    locked: bool = False
    available: bool = True



class LessonListResponse(BaseModel):
    subject: str
    total_lessons: int
    completed_lessons: int
    lessons: list[LessonOverview] = []
