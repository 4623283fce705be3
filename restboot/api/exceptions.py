"""
Custom exceptions and error responses for the demo API.
"""

from typing import Dict, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from .models import ErrorResponse


class APIException(HTTPException):
    """Base exception for API-related errors."""

    def __init__(
        self,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict] = None
    ):
        self.error_type = error_type
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class InvalidNameError(APIException):
    """Raised when a greeting name is unusable."""

    def __init__(self, name: str, reason: str):
        super().__init__(
            status_code=400,
            error_type="InvalidName",
            message=f"Invalid name '{name}': {reason}",
            details={"name": name, "reason": reason}
        )


def create_error_response(exception: Exception) -> JSONResponse:
    """
    Create a standardized error response from an exception.

    API exceptions keep their status code; anything else becomes a generic 500.
    """
    if isinstance(exception, APIException):
        error_response = ErrorResponse(
            error=exception.error_type,
            message=exception.detail,
            details=exception.details
        )
        return JSONResponse(
            status_code=exception.status_code,
            content=error_response.model_dump()
        )

    error_response = ErrorResponse(
        error="InternalServerError",
        message="An unexpected error occurred",
        details={"error_type": type(exception).__name__}
    )
    return JSONResponse(status_code=500, content=error_response.model_dump())
