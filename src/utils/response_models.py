"""
Standard Response Models for API endpoints.

Errors share one shape across the API:
- success: always False
- statusCode: the HTTP status code
- message: human-readable explanation
"""

from typing import Any
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    status_code: int = Field(alias="statusCode")
    message: str


def error_response(status_code: int, message: str) -> dict:
    """Create a standard error response dict."""
    return ErrorResponse(status_code=status_code, message=message).model_dump(by_alias=True)


def message_response(message: str, data: Any = None) -> dict:
    """Create a standard confirmation response dict."""
    response = {"success": True, "message": message}
    if data is not None:
        response["data"] = data
    return response
