"""Question bank and quiz attempt models."""

import uuid
from datetime import UTC, datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class Difficulty(str, PyEnum):
    """Question difficulty tier."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionStatus(str, PyEnum):
    """Question lifecycle; only active questions are drawn into new quizzes."""

    ACTIVE = "active"
    REVIEW = "review"
    DELETED = "deleted"  # soft delete


class Question(Base):
    """A multiple-choice question with its ordered options."""

    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), nullable=False, unique=True, default=lambda: str(uuid.uuid4()))

    question = Column(Text, nullable=False)
    explanation = Column(Text, nullable=False, default="")
    topic = Column(String(255), nullable=True)  # free-form label, mapped to a canonical topic at scoring time
    difficulty = Column(
        Enum(Difficulty, name="difficulty", values_callable=_enum_values),
        nullable=False,
        default=Difficulty.MEDIUM,
    )

    # Multi-answer metadata (legacy rows may carry either, both or neither)
    has_multiple_correct_answers = Column(Boolean, nullable=False, default=False)
    correct_answers = Column(JSON, nullable=True)  # ["option text", ...]

    status = Column(
        Enum(QuestionStatus, name="question_status", values_callable=_enum_values),
        nullable=False,
        default=QuestionStatus.ACTIVE,
    )
    source = Column(String(50), nullable=False, default="manual")

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=_utcnow)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    options = relationship(
        "Option",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="Option.position",
    )

    __table_args__ = (
        Index("ix_questions_topic", "topic"),
        Index("ix_questions_status_difficulty", "status", "difficulty"),
    )


class Option(Base):
    """One selectable choice, owned by exactly one question."""

    __tablename__ = "options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False)  # 1-based display order

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    question = relationship("Question", back_populates="options")

    __table_args__ = (
        UniqueConstraint("question_id", "position", name="uq_option_position"),
        Index("ix_options_question_id", "question_id"),
    )


class Quiz(Base):
    """A quiz attempt; its question set is fixed at creation."""

    __tablename__ = "quizzes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=True)
    num_questions = Column(Integer, nullable=False)

    # Completion (one-way: incomplete -> complete)
    is_completed = Column(Boolean, nullable=False, default=False)
    score = Column(Integer, nullable=True)  # 0-100, set on completion
    pass_percentage = Column(Integer, nullable=False, default=70)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    questions = relationship(
        "QuizQuestion",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestion.position",
    )
    topic_performance = relationship(
        "TopicPerformance",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="TopicPerformance.id",
    )

    __table_args__ = (
        CheckConstraint(
            "(NOT is_completed AND score IS NULL AND completed_at IS NULL)"
            " OR (is_completed AND score IS NOT NULL AND completed_at IS NOT NULL)",
            name="ck_quiz_completion_state",
        ),
        CheckConstraint("score IS NULL OR (score >= 0 AND score <= 100)", name="ck_quiz_score_range"),
        Index("ix_quizzes_user_created", "user_id", "created_at"),
    )


class QuizQuestion(Base):
    """A question inside a quiz, plus its recorded outcome (if answered)."""

    __tablename__ = "quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(
        String(36),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    question_id = Column(
        Integer,
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    position = Column(Integer, nullable=False)  # 1-based position in quiz

    # Outcome
    user_answer = Column(Integer, ForeignKey("options.id", ondelete="SET NULL"), nullable=True)
    is_correct = Column(Boolean, nullable=True)  # null until evaluated
    answered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    quiz = relationship("Quiz", back_populates="questions")
    question = relationship("Question")
    selected_option = relationship("Option", foreign_keys=[user_answer])

    __table_args__ = (
        UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),
        Index("ix_quiz_questions_quiz_id", "quiz_id"),
    )


class TopicPerformance(Base):
    """Per-topic breakdown written once when a quiz completes."""

    __tablename__ = "topic_performance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quiz_id = Column(
        String(36),
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
    )
    topic = Column(String(50), nullable=False)  # canonical topic
    correct = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    percentage = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    quiz = relationship("Quiz", back_populates="topic_performance")

    __table_args__ = (Index("ix_topic_performance_quiz_id", "quiz_id"),)
