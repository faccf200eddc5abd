from typing import Optional
from fastapi import APIRouter, Query, Request

from app.core.config import settings
from app.core.constants import LeaderboardScopeEnum, LeaderboardPeriodEnum
from app.schemas.leaderboard import LeaderboardPage
from app.schemas.response import APIResponse
from app.services.leaderboard import leaderboard_service

router = APIRouter()


@router.get("/", response_model=APIResponse[LeaderboardPage])
async def get_leaderboard(
    *,
    request: Request,
    scope: LeaderboardScopeEnum = Query(LeaderboardScopeEnum.GLOBAL),
    period: LeaderboardPeriodEnum = Query(LeaderboardPeriodEnum.ALL),
    quiz_id: Optional[int] = Query(None),
    batch_key: Optional[str] = Query(None, max_length=128),
    limit: int = Query(settings.LEADERBOARD_DEFAULT_LIMIT, ge=1, le=settings.LEADERBOARD_MAX_LIMIT)
):
    scope_key = leaderboard_service.build_scope_key(scope, period, quiz_id=quiz_id, batch_key=batch_key)
    page = await leaderboard_service.get_page(
        scope_key, leaderboard_service.clamp_limit(limit), request=request
    )
    return APIResponse(message="Leaderboard retrieved successfully", data=page)
