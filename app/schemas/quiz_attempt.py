from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime

from app.core.constants import AttemptStatusEnum

class AttemptSummary(BaseModel):
    """What the attempt-recording side hands over once an attempt is stored."""
    user_id: int
    quiz_id: int
    score: int = Field(..., ge=0)
    total_questions: int = Field(..., ge=0)
    passed: bool = False
    status: AttemptStatusEnum = AttemptStatusEnum.COMPLETED
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class AttemptReleaseRequest(BaseModel):
    attempt_ids: List[int] = Field(..., min_length=1)

class AttemptReleaseResult(BaseModel):
    matched: int
    released: int
