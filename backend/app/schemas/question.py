"""Schemas for Questions."""

from datetime import datetime

from pydantic import Field, field_validator, model_validator

from app.models.quiz import Difficulty, QuestionStatus
from app.schemas.quiz import CamelModel

# Validation caps (input hardening)
STEM_MAX_LENGTH = 4000
EXPLANATION_MAX_LENGTH = 12000
OPTION_MAX_LENGTH = 500
TOPIC_MAX_LENGTH = 255


class OptionIn(CamelModel):
    """An option of a new question."""

    text: str = Field(..., min_length=1, max_length=OPTION_MAX_LENGTH)
    is_correct: bool = False


class QuestionCreate(CamelModel):
    """Schema for creating a question."""

    question: str = Field(..., min_length=1, max_length=STEM_MAX_LENGTH, description="Question text")
    options: list[OptionIn] = Field(..., description="Options in display order")
    explanation: str = Field("", max_length=EXPLANATION_MAX_LENGTH)
    topic: str | None = Field(None, max_length=TOPIC_MAX_LENGTH, description="Free-form topic label")
    difficulty: Difficulty = Difficulty.MEDIUM
    has_multiple_correct_answers: bool | None = Field(
        None, description="Derived from options when omitted"
    )
    source: str = Field("manual", max_length=50)

    @field_validator("topic")
    @classmethod
    def blank_topic_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def derive_multiple_answers(self):
        if self.has_multiple_correct_answers is None:
            self.has_multiple_correct_answers = sum(o.is_correct for o in self.options) >= 2
        return self


class QuestionUpdate(CamelModel):
    """Schema for editing a question (all fields optional)."""

    question: str | None = Field(None, min_length=1, max_length=STEM_MAX_LENGTH)
    options: list[OptionIn] | None = Field(None, description="Replaces the options, in display order")
    explanation: str | None = Field(None, max_length=EXPLANATION_MAX_LENGTH)
    topic: str | None = Field(None, max_length=TOPIC_MAX_LENGTH)
    difficulty: Difficulty | None = None
    has_multiple_correct_answers: bool | None = None
    source: str | None = Field(None, max_length=50)

    @field_validator("topic")
    @classmethod
    def blank_topic_is_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v


class QuestionStatusUpdate(CamelModel):
    """Status change; "deleted" soft-deletes the question."""

    status: QuestionStatus


class OptionOut(CamelModel):
    """Stored option."""

    id: int
    text: str
    is_correct: bool
    position: int


class QuestionOut(CamelModel):
    """Stored question with options."""

    id: int
    uuid: str
    question: str
    explanation: str
    topic: str | None
    canonical_topic: str | None = None
    difficulty: Difficulty
    has_multiple_correct_answers: bool
    correct_answers: list[str] | None
    status: QuestionStatus
    source: str
    created_at: datetime
    updated_at: datetime | None = None
    deleted_at: datetime | None = None
    options: list[OptionOut]


class QuestionStatsOut(CamelModel):
    """Question bank counts."""

    total: int
    active: int
    multiple_answer: int
    by_topic: dict[str, int]
    by_canonical_topic: dict[str, int]
    by_difficulty: dict[str, int]
    by_status: dict[str, int]
