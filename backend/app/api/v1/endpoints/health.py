"""Health and readiness endpoints."""

from typing import Literal

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import get_request_id
from app.db.session import get_db
from app.models.quiz import Question, QuestionStatus

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["ok"] = "ok"


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""

    status: Literal["ok", "degraded", "down"]
    message: str | None = None


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: Literal["ok", "degraded", "down"]
    checks: dict[str, ReadinessCheck]
    request_id: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    description="Simple health check endpoint. Returns 200 if the API is running.",
)
async def health_check() -> HealthResponse:
    """Health check endpoint - just checks if the process is alive."""
    return HealthResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Readiness check endpoint. Verifies database connectivity and that the question bank can fill a quiz.",
)
async def readiness_check(
    request: Request,
    db: Session = Depends(get_db),
) -> ReadinessResponse:
    """Readiness check endpoint - checks the database and the question bank."""
    request_id = get_request_id(request)
    checks: dict[str, ReadinessCheck] = {}
    overall_status: Literal["ok", "degraded", "down"] = "ok"

    # Check database
    try:
        db.execute(text("SELECT 1"))
        checks["db"] = ReadinessCheck(status="ok")
    except SQLAlchemyError as e:
        checks["db"] = ReadinessCheck(status="down", message=str(e))
        overall_status = "down"

    # Check question bank
    if overall_status == "ok":
        active = db.execute(
            select(func.count(Question.id)).where(Question.status == QuestionStatus.ACTIVE)
        ).scalar_one()
        if active:
            checks["questions"] = ReadinessCheck(status="ok", message=f"{active} active")
        else:
            checks["questions"] = ReadinessCheck(status="degraded", message="No active questions")
            overall_status = "degraded"

    return ReadinessResponse(
        status=overall_status,
        checks=checks,
        request_id=request_id,
    )
