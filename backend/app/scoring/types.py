"""Immutable value types shared by the scoring pipeline.

These are snapshots of persisted rows taken when a quiz is loaded; the scoring
functions never see ORM objects, so evaluation cannot mutate stored questions.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class OptionSnapshot:
    """One selectable choice of a question."""

    id: int
    text: str
    is_correct: bool


@dataclass(frozen=True)
class QuestionSnapshot:
    """A question as seen by the evaluator; options keep their display order."""

    id: int
    text: str
    options: tuple[OptionSnapshot, ...]
    topic: str | None
    difficulty: str = "medium"
    has_multiple_correct_answers: bool = False
    correct_answers: tuple[str, ...] = ()

    @property
    def correct_options(self) -> tuple[OptionSnapshot, ...]:
        return tuple(option for option in self.options if option.is_correct)


@dataclass(frozen=True)
class SubmittedAnswer:
    """Tokens a test-taker selected for one question.

    Each token is an option's persisted id or its 1-based position, as a string.
    """

    question_id: str
    tokens: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class QuestionOutcome:
    """Recorded evaluation of one question within one quiz."""

    quiz_id: str
    question_id: int
    option_id: int | None
    is_correct: bool


@dataclass(frozen=True)
class TopicPerformanceEntry:
    """Correct/total/percentage for one topic bucket of one quiz."""

    topic: str
    correct: int
    total: int
    percentage: int


@dataclass(frozen=True)
class Incomplete:
    """Quiz still accepting answers."""


@dataclass(frozen=True)
class Complete:
    """Quiz finalized; terminal state."""

    score: int
    completed_at: datetime


QuizState = Incomplete | Complete


@dataclass(frozen=True)
class QuizQuestionSnapshot:
    """A question slot in a quiz with its stored outcome, if any."""

    position: int
    question: QuestionSnapshot
    outcome: QuestionOutcome | None = None


@dataclass(frozen=True)
class QuizSnapshot:
    """A quiz attempt with its fixed question set."""

    id: str
    user_id: str | None
    pass_percentage: int
    state: QuizState
    questions: tuple[QuizQuestionSnapshot, ...] = ()
    created_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return isinstance(self.state, Complete)

    @property
    def stored_outcomes(self) -> dict[int, QuestionOutcome]:
        return {
            slot.question.id: slot.outcome for slot in self.questions if slot.outcome is not None
        }
