from enum import Enum
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


DIFFICULTY_ORDER = (Difficulty.EASY, Difficulty.MEDIUM, Difficulty.HARD)


class PracticeMode(str, Enum):
    NORMAL = "normal"
    TIMED = "timed"
    WEAK_SPOT = "weak-spot"


CanonicalAnswer = Union[int, float, str]


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    topic: str
    question_text: str
    difficulty: Difficulty
    subtopic: str = ""
    section_id: Optional[int] = None

    @property
    def key(self) -> str:
        """Stable identity across banks: "<topic>-<id>"."""
        return f"{self.topic}-{self.id}"


class QuestionBank(BaseModel):
    subject: str
    questions: list[Question] = []
    # question key -> canonical answer
    answers: dict[str, CanonicalAnswer] = {}

    def get(self, key: str) -> Optional[Question]:
        for question in self.questions:
            if question.key == key:
                return question
        return None


class Evaluation(BaseModel):
    is_correct: bool
    canonical_answer: str
    submitted_answer: str


class PublicQuestion(BaseModel):
    """A question as sent to the client: no answer attached."""
    key: str
    id: int
    topic: str
    subtopic: str = ""
    difficulty: Difficulty
    question_text: str


class StartSessionRequest(BaseModel):
    mode: PracticeMode = PracticeMode.NORMAL
    count: Optional[int] = None


class AnswerSubmission(BaseModel):
    question_key: str
    answer: str
    time_taken_seconds: Optional[int] = None


class SessionEntry(BaseModel):
    question_key: str
    user_answer: str
    canonical_answer: str
    is_correct: bool
    time_taken_seconds: int


class SessionSummary(BaseModel):
    session_id: str
    subject: str
    mode: PracticeMode
    total_questions: int
    answered: int
    correct: int
    percentage: int
    completed: bool
    time_up: bool = False
    time_limit_seconds: Optional[int] = None
    time_remaining_seconds: Optional[int] = None
    entries: list[SessionEntry] = []
