"""
Common API Schemas

Shared Pydantic models used across all API routers.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standard error response model for all API errors.

    Attributes:
        code: Machine-readable error code (e.g., "JOB_NOT_FOUND", "INSUFFICIENT_FUNDS")
        message: Human-readable error message
        details: Optional additional error details (validation errors, balances)
    """

    code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error context"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "code": "INSUFFICIENT_FUNDS",
                "message": "Insufficient funds: required 3, available 1",
                "details": {"required": 3, "available": 1},
            }
        }


def error_detail(
    code: str, message: str, details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Build the HTTPException detail payload in ErrorResponse shape."""
    return ErrorResponse(code=code, message=message, details=details).model_dump()
