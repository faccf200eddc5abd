from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.quiz_attempt import AttemptReleaseRequest, AttemptReleaseResult, AttemptSummary
from app.schemas.response import APIResponse
from app.services.quiz_attempt import quiz_attempt_service

router = APIRouter()


@router.post("/completed", response_model=APIResponse[None], status_code=status.HTTP_202_ACCEPTED)
def attempt_completed(
    *,
    attempt_in: AttemptSummary
):
    quiz_attempt_service.on_attempt_completed(attempt_in)
    return APIResponse(message="Attempt accepted for ranking")


@router.post("/release", response_model=APIResponse[AttemptReleaseResult])
def release_pending_attempts(
    *,
    db: Session = Depends(get_db),
    release_in: AttemptReleaseRequest
):
    result = quiz_attempt_service.release_pending_attempts(db, release_in.attempt_ids)
    return APIResponse(message="Results released successfully", data=result)
