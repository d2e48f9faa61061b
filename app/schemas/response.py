from pydantic import BaseModel, Field
from typing import Generic, TypeVar, Optional, Any, Dict

DataType = TypeVar("DataType")

class APIResponse(BaseModel, Generic[DataType]):
    """Envelope for successful cache admin responses."""
    message: str = Field(..., description="What the operation did, e.g. how many entries were removed.")
    data: Optional[DataType] = Field(None, description="Operation result, if any.")

class ErrorDetail(BaseModel):
    code: str = Field(..., description="Machine-readable code derived from the HTTP status, e.g. SERVICE_UNAVAILABLE")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Validation errors or the failing error type")

class ErrorResponse(BaseModel):
    """Envelope for every error the API returns, including cache store outages."""
    error: ErrorDetail
    timestamp: str = Field(..., description="ISO 8601 UTC timestamp of the failure")
    path: str = Field(..., description="Request path that failed")
    request_id: str = Field(..., description="Matches the X-Request-ID response header when set by the logging middleware")
