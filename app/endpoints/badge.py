from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.badge import Badge, EarnedBadge
from app.schemas.response import APIResponse
from app.services.badge import badge_service

router = APIRouter()


@router.get("/catalog", response_model=APIResponse[List[Badge]])
def get_badge_catalog(
    *,
    db: Session = Depends(get_db)
):
    catalog = badge_service.get_catalog(db)
    return APIResponse(message="Badge catalog retrieved successfully", data=catalog)


@router.get("/users/{user_id}", response_model=APIResponse[List[EarnedBadge]])
def get_user_badges(
    *,
    db: Session = Depends(get_db),
    user_id: int
):
    badges = badge_service.get_user_badges(db, user_id)
    return APIResponse(message="User badges retrieved successfully", data=badges)
