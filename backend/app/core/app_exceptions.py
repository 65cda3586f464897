"""Application-specific exceptions for consistent error handling."""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class NotFoundError(AppError):
    """A referenced quiz or question does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_404_NOT_FOUND, "NOT_FOUND", message, details)


class AlreadyCompletedError(AppError):
    """Answers were submitted against a quiz that is already complete."""

    def __init__(self, quiz_id: str):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "QUIZ_ALREADY_COMPLETED",
            "Cannot update answers for completed quiz",
            {"quiz_id": quiz_id},
        )


class QuizNotCompletedError(AppError):
    """Results were requested for a quiz that is still in progress."""

    def __init__(self, quiz_id: str):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "QUIZ_NOT_COMPLETED",
            "Quiz is not completed yet",
            {"quiz_id": quiz_id},
        )


class NotEnoughQuestionsError(AppError):
    """The question bank cannot satisfy a quiz request."""

    def __init__(self, requested: int, available: int):
        super().__init__(
            status.HTTP_400_BAD_REQUEST,
            "NOT_ENOUGH_QUESTIONS",
            f"Not enough questions available. Requested {requested}, found {available}",
            {"requested_count": requested, "available_count": available},
        )


class InvalidQuestionError(AppError):
    """A question payload violates the question invariants."""

    def __init__(self, message: str):
        super().__init__(status.HTTP_400_BAD_REQUEST, "INVALID_QUESTION", message)


class PersistenceError(AppError):
    """A write to the quiz store failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, "PERSISTENCE_ERROR", message, details)


class QuestionInUseError(AppError):
    """A question still referenced by quizzes cannot be hard-deleted."""

    def __init__(self, question_id: int, quiz_count: int):
        super().__init__(
            status.HTTP_409_CONFLICT,
            "QUESTION_IN_USE",
            "Question is used by existing quizzes; set its status to deleted instead",
            {"question_id": question_id, "quiz_count": quiz_count},
        )
