"""Question bank endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.schemas.question import (
    QuestionCreate,
    QuestionOut,
    QuestionStatsOut,
    QuestionStatusUpdate,
    QuestionUpdate,
)
from app.scoring.topics import TopicTaxonomy, map_to_canonical_topic
from app.services.question_bank import (
    create_question,
    delete_question,
    get_question,
    get_question_stats,
    set_question_status,
    update_question,
)
from app.services.quiz_completion import default_taxonomy

router = APIRouter()


def _question_out(question, taxonomy: TopicTaxonomy) -> QuestionOut:
    out = QuestionOut.model_validate(question)
    if question.topic:
        out.canonical_topic = map_to_canonical_topic(question.topic, taxonomy)
    return out


@router.post("", response_model=QuestionOut, status_code=status.HTTP_201_CREATED)
async def create_question_endpoint(
    payload: QuestionCreate,
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """
    Create a question with its options.

    Requires at least two options and one correct option. The multiple-answer flag
    is derived from the options when omitted.
    """
    question = await create_question(db, payload)
    return _question_out(question, taxonomy)


@router.get("/stats", response_model=QuestionStatsOut)
async def question_stats(
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """Question counts by topic, canonical topic and difficulty."""
    return await get_question_stats(db, taxonomy)


@router.get("/{question_ref}", response_model=QuestionOut)
async def read_question(
    question_ref: str,
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """Fetch a question by numeric id or uuid."""
    question = await get_question(db, question_ref)
    return _question_out(question, taxonomy)


@router.put("/{question_ref}", response_model=QuestionOut)
async def update_question_endpoint(
    question_ref: str,
    payload: QuestionUpdate,
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """Edit a question. Omitted fields are left unchanged; options are replaced as a whole."""
    question = await update_question(db, question_ref, payload)
    return _question_out(question, taxonomy)


@router.patch("/{question_ref}/status", response_model=QuestionOut)
async def update_question_status(
    question_ref: str,
    payload: QuestionStatusUpdate,
    db: Annotated[Session, Depends(get_db)],
    taxonomy: Annotated[TopicTaxonomy, Depends(default_taxonomy)],
):
    """Set a question to active, review or deleted (soft delete)."""
    question = await set_question_status(db, question_ref, payload.status)
    return _question_out(question, taxonomy)


@router.delete("/{question_ref}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question_endpoint(
    question_ref: str,
    db: Annotated[Session, Depends(get_db)],
) -> None:
    """Hard-delete a question that no quiz uses."""
    await delete_question(db, question_ref)
