import hashlib
from datetime import datetime, timedelta
from typing import List, Optional, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.constants import LeaderboardScopeEnum, LeaderboardPeriodEnum, PERIOD_DAYS


class ScopeKey(BaseModel):
    """Identifies one leaderboard: population partition plus trailing window.

    ``scope_ref`` (the batch key) is required for batch scope only and
    ``quiz_id`` for quiz scope only. Construction fails with a pydantic
    ``ValidationError`` (a ``ValueError``) otherwise.
    """
    model_config = ConfigDict(frozen=True)

    scope: LeaderboardScopeEnum = LeaderboardScopeEnum.GLOBAL
    period: LeaderboardPeriodEnum = LeaderboardPeriodEnum.ALL
    quiz_id: Optional[int] = None
    scope_ref: Optional[str] = None

    @model_validator(mode="after")
    def check_scope_references(self):
        if self.scope == LeaderboardScopeEnum.BATCH:
            if not self.scope_ref:
                raise ValueError("batch scope requires a batch key")
        elif self.scope_ref is not None:
            raise ValueError(f"{self.scope.value} scope does not take a batch key")

        if self.scope == LeaderboardScopeEnum.QUIZ:
            if self.quiz_id is None:
                raise ValueError("quiz scope requires a quiz id")
        elif self.quiz_id is not None:
            raise ValueError(f"{self.scope.value} scope does not take a quiz id")
        return self

    @property
    def scope_id(self) -> str:
        # batch keys are opaque user data, hash them so the id stays safe inside cache glob patterns
        ref = hashlib.md5(self.scope_ref.encode()).hexdigest()[:16] if self.scope_ref else "-"
        quiz = str(self.quiz_id) if self.quiz_id is not None else "-"
        return f"{self.scope.value}:{ref}:{quiz}:{self.period.value}"

    def window_start(self, now: datetime) -> Optional[datetime]:
        days = PERIOD_DAYS[self.period]
        if days is None:
            return None
        return now - timedelta(days=days)

    def __str__(self) -> str:
        parts = [self.scope.value, self.period.value]
        if self.quiz_id is not None:
            parts.append(f"quiz={self.quiz_id}")
        if self.scope_ref:
            parts.append(f"batch={self.scope_ref}")
        return "/".join(parts)


class SubjectSummary(BaseModel):
    user_id: int
    attempts: int
    avg_score: float
    accuracy: float
    composite_score: float


class RowBadge(BaseModel):
    code: str
    name: str
    icon: str = ""


class LeaderboardRow(BaseModel):
    rank: int
    user_id: int
    display_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: str = ""
    college: str = ""
    composite_score: float
    avg_score: float
    accuracy: float
    attempts: int
    badges: List[RowBadge] = []
    sparkline: List[int] = []


class LeaderboardPage(BaseModel):
    scope: LeaderboardScopeEnum
    period: LeaderboardPeriodEnum
    quiz_id: Optional[int] = None
    scope_ref: Optional[str] = None
    generated_at: datetime
    stale: bool = Field(False, description="True when served from stored rows after a failed rebuild")
    leaderboard: List[LeaderboardRow] = []


class LiveErrorTick(BaseModel):
    type: Literal["error"] = "error"
    scope: LeaderboardScopeEnum
    period: LeaderboardPeriodEnum
    message: str
