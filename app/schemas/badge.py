from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional, Dict, Any

class Badge(BaseModel):
    """Catalog entry."""
    code: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    active: bool = True

    model_config = ConfigDict(from_attributes=True)

class EarnedBadge(BaseModel):
    """A badge as shown on a subject's profile."""
    code: str
    name: str
    description: str = ""
    icon: str = ""
    earned_at: datetime
    meta: Optional[Dict[str, Any]] = None
