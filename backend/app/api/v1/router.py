"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from app.api.v1.endpoints import health, questions, quizzes, stats

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(questions.router, prefix="/questions", tags=["Questions"])
api_router.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
api_router.include_router(stats.router, prefix="/stats", tags=["Statistics"])
