from pydantic import BaseModel, ConfigDict, Field
from typing import Generic, TypeVar, Optional, Any, Dict

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Envelope shared by every successful response."""
    message: str = Field(..., description="What the call did")
    data: Optional[DataType] = Field(None, description="Payload, absent for accepted-only calls")

class ErrorDetail(BaseModel):
    code: str = Field(..., description="BAD_REQUEST, VALIDATION_ERROR, SERVICE_UNAVAILABLE, ...")
    message: str
    details: Optional[Dict[str, Any]] = None

class ErrorResponse(BaseModel):
    """Body of every error response, produced by the exception handlers."""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "error": {"code": "SERVICE_UNAVAILABLE", "message": "Leaderboard is temporarily unavailable."},
            "timestamp": "2026-01-01T00:00:00",
            "path": "http://localhost:8000/leaderboard/?scope=global&period=all",
            "request_id": "5b0f1c52-9a43-4d6e-b0a7-2f1e4c7d9a10",
        }
    })

    error: ErrorDetail
    timestamp: str = Field(..., description="ISO 8601 time the error was produced")
    path: str
    request_id: Optional[str] = Field(None, description="Echoes X-Request-ID")
