"""Pydantic schemas for quizzes, answer submission, results and statistics."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.quiz import Difficulty


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _as_token(value):
    # Clients send option ids and indexes as numbers as well as strings
    if isinstance(value, bool):
        raise ValueError("Answer tokens must be strings or numbers")
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    return value


# ============================================================================
# Answer Submission
# ============================================================================


class AnswerIn(CamelModel):
    """One question's selected tokens (option ids or 1-based positions)."""

    question_id: str = Field(..., min_length=1)
    answer: list[str] = Field(default_factory=list)

    @field_validator("question_id", mode="before")
    @classmethod
    def coerce_question_id(cls, v):
        return _as_token(v)

    @field_validator("answer", mode="before")
    @classmethod
    def coerce_tokens(cls, v):
        if v is None:
            return []
        if not isinstance(v, list):
            v = [v]
        return [_as_token(token) for token in v]


class AnswerSubmission(CamelModel):
    """Submission boundary request body."""

    quiz_id: str = Field(..., min_length=1)
    user_id: str | None = None
    answers: list[AnswerIn] = Field(default_factory=list)
    is_complete: bool = False


class TopicPerformanceOut(CamelModel):
    """Correct/total/percentage for one topic."""

    topic: str
    correct: int
    total: int
    percentage: int


class AnswerSubmissionResponse(CamelModel):
    """Submission boundary response body."""

    success: bool = True
    processed: int
    correct: int
    score: int | None = None
    passed: bool | None = None
    topic_performance: list[TopicPerformanceOut] = Field(default_factory=list)


class QuizCompletionResponse(CamelModel):
    """Result of completing a quiz from stored outcomes."""

    quiz_id: str
    score: int
    passed: bool
    correct: int
    total: int
    completed_at: datetime
    topic_performance: list[TopicPerformanceOut]


# ============================================================================
# Quiz Creation
# ============================================================================


class QuizCreate(CamelModel):
    """Request to create a quiz."""

    user_id: str | None = None
    num_questions: int | None = Field(None, ge=1, description="Defaults to DEFAULT_QUESTIONS_PER_QUIZ")
    topics: list[str] | None = Field(None, description="Topic labels; mapped onto canonical topics")
    difficulty: Difficulty | None = None
    question_ids: list[str] | None = Field(None, description="Explicit question ids or uuids")
    seed: str | None = Field(None, description="Seed for reproducible selection")

    @field_validator("question_ids", mode="before")
    @classmethod
    def coerce_question_ids(cls, v):
        if v is None:
            return v
        return [_as_token(item) for item in v]


class QuizOptionOut(CamelModel):
    """An option as shown to a test-taker (correctness hidden)."""

    id: int
    text: str
    position: int


class QuizQuestionOut(CamelModel):
    """A quiz question with its options."""

    id: int
    position: int
    question: str
    topic: str | None
    difficulty: str
    has_multiple_correct_answers: bool
    options: list[QuizOptionOut]


class QuizOut(CamelModel):
    """Quiz envelope with its questions."""

    id: str
    user_id: str | None
    num_questions: int
    is_completed: bool
    score: int | None
    pass_percentage: int
    created_at: datetime
    completed_at: datetime | None
    questions: list[QuizQuestionOut] = Field(default_factory=list)


# ============================================================================
# Results / History / Statistics
# ============================================================================


class QuestionResultOut(CamelModel):
    """Per-question entry of a quiz result."""

    question_id: int
    question: str
    user_answer: int | None
    is_correct: bool | None
    correct_answer_index: int | None  # 1-based position of the first correct option
    explanation: str = ""


class TopicScoreOut(CamelModel):
    """Topic score weighted by its share of the quiz."""

    name: str
    score: int
    possible: int
    weight: float


class QuizResultsOut(CamelModel):
    """Full results for a completed quiz."""

    quiz_id: str
    score: int
    pass_percentage: int
    passed: bool
    total_questions: int
    correct_answers: int
    duration: str  # hh:mm:ss
    completed_at: datetime
    questions: list[QuestionResultOut]
    topic_performance: list[TopicPerformanceOut]
    topic_scores: list[TopicScoreOut]


class QuizHistoryItem(CamelModel):
    """A quiz in a user's history."""

    id: str
    num_questions: int
    is_completed: bool
    score: int | None
    passed: bool | None
    pass_percentage: int
    created_at: datetime
    completed_at: datetime | None


class UserStatsOut(CamelModel):
    """Totals and cross-quiz topic performance for one user."""

    user_id: str
    total_quizzes: int
    completed_quizzes: int
    average_score: int
    pass_rate: int
    recent_quizzes: list[QuizHistoryItem]
    topic_performance: list[TopicPerformanceOut]
