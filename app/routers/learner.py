# =============================================================================
# app/routers/learner.py - Learner Data Endpoints
# =============================================================================
# Cached reads and write-through updates for one learner's data:
# - GET/POST   /user-progress/{user_id}
# - GET/POST   /user-subjects/{user_id}
# - DELETE     /user-subjects/{user_id}/{subject}
# - GET/POST   /user-chats/{user_id}
# - GET/POST   /quiz-results/{user_id}/{subject}
#
# user_id may be the auth UUID or the public text ID; callers may only
# touch their own data. GET responses carry X-Cache: HIT|MISS and a private
# Cache-Control so shared caches never store them.
# =============================================================================

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.auth import AuthUser, get_current_user
from app.dependencies import LearnerServiceDep
from app.exceptions import AccessDeniedError
from core.models.learner import ChatsUpdate, ProgressUpdate, QuizResultCreate, SubjectCreate
from core.services.learner_service import CachedRead

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_user_access(user: AuthUser, user_id: str) -> None:
    """
    Check that the caller is reading or writing their own data.

    Raises:
        AccessDeniedError: 403 if user_id names someone else
    """
    if not user.matches(user_id):
        logger.warning(f"User {user.id} denied access to data of {user_id}")
        raise AccessDeniedError(user_id)


def cached_response(read: CachedRead) -> JSONResponse:
    return JSONResponse(
        content=read.data,
        headers={
            "X-Cache": read.cache_status,
            "Cache-Control": f"private, max-age={read.ttl}",
            "Vary": "Authorization",
        },
    )


# =============================================================================
# Progress
# =============================================================================

@router.get("/user-progress/{user_id}")
async def get_user_progress(
    user_id: str,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    """
    Get the learner's level.

    Users without a progress row get level 1.
    """
    verify_user_access(user, user_id)
    return cached_response(service.get_progress(user_id))


@router.post("/user-progress/{user_id}")
async def update_user_progress(
    user_id: str,
    body: ProgressUpdate,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    verify_user_access(user, user_id)
    return service.update_progress(user_id, body.level)


# =============================================================================
# Subjects
# =============================================================================

@router.get("/user-subjects/{user_id}")
async def get_user_subjects(
    user_id: str,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    verify_user_access(user, user_id)
    return cached_response(service.get_subjects(user_id))


@router.post("/user-subjects/{user_id}")
async def add_user_subject(
    user_id: str,
    body: SubjectCreate,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Enroll the learner in a subject. Adding an existing subject is a no-op."""
    verify_user_access(user, user_id)
    return service.add_subject(user_id, body.subject)


@router.delete("/user-subjects/{user_id}/{subject}")
async def remove_user_subject(
    user_id: str,
    subject: str,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, bool]:
    verify_user_access(user, user_id)
    service.remove_subject(user_id, subject)
    return {"success": True}


# =============================================================================
# Chats
# =============================================================================

@router.get("/user-chats/{user_id}")
async def get_user_chats(
    user_id: str,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    verify_user_access(user, user_id)
    return cached_response(service.get_chats(user_id))


@router.post("/user-chats/{user_id}")
async def replace_user_chats(
    user_id: str,
    body: ChatsUpdate,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """Replace the learner's stored chat messages wholesale."""
    verify_user_access(user, user_id)
    return service.replace_chats(user_id, body.messages)


# =============================================================================
# Quiz Results
# =============================================================================

@router.get("/quiz-results/{user_id}/{subject}")
async def get_quiz_results(
    user_id: str,
    subject: str,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> JSONResponse:
    verify_user_access(user, user_id)
    return cached_response(service.get_quiz_results(user_id, subject))


@router.post("/quiz-results/{user_id}/{subject}")
async def save_quiz_result(
    user_id: str,
    subject: str,
    body: QuizResultCreate,
    service: LearnerServiceDep,
    user: AuthUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    Record a quiz outcome for a lesson.

    A second result for the same lesson replaces the first.
    """
    verify_user_access(user, user_id)
    result = service.save_quiz_result(user_id, subject, body)
    return {"success": True, "result": result}
