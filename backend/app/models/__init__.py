"""Database models."""

from app.models.quiz import (
    Difficulty,
    Option,
    Question,
    QuestionStatus,
    Quiz,
    QuizQuestion,
    TopicPerformance,
)

__all__ = [
    "Difficulty",
    "QuestionStatus",
    "Question",
    "Option",
    "Quiz",
    "QuizQuestion",
    "TopicPerformance",
]
