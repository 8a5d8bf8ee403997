# =============================================================================
# core/models/learner.py - Learner Data Schemas
# =============================================================================
# Request bodies for the cached learner data endpoints:
# - ProgressUpdate: set the learner's level
# - SubjectCreate: add a subject to the learner's list
# - ChatsUpdate: replace the learner's chat history document
# - QuizResultCreate: record one lesson's quiz outcome
#
# Responses are plain dicts shaped like the database rows so that the exact
# same object can be cached and served again on a HIT.
# =============================================================================

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProgressUpdate(BaseModel):
    """
    Example:
        {"level": 5}
    """
    level: int = Field(..., ge=1, le=100, description="Learner level (1-100)")


class SubjectCreate(BaseModel):
    """
    Example:
        {"subject": "Mathematics"}
    """
    subject: str = Field(..., min_length=1, max_length=100)


class ChatsUpdate(BaseModel):
    """Full replacement of the chat history; entries are opaque."""
    messages: list[Any]


class QuizResultCreate(BaseModel):
    """
    One quiz outcome for a lesson. A later result for the same lesson
    replaces the earlier one.

    Example:
        {
            "lessonId": "lesson-12",
            "score": 8,
            "totalQuestions": 10,
            "answers": [1, 0, 3, 2, 2, 1, 0, 0, 1, 3]
        }
    """

    model_config = ConfigDict(populate_by_name=True)

    lesson_id: str = Field(..., alias="lessonId", min_length=1)
    score: int | float = Field(..., ge=0)
    total_questions: int = Field(..., alias="totalQuestions", ge=1)
    answers: list[int | float]
