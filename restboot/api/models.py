"""
Pydantic models for demo API requests and responses.
"""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field


class GreetingResponse(BaseModel):
    """Response model for greeting endpoints."""

    message: str = Field(..., description="Greeting text")


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""

    status: str = Field("healthy", description="Always 'healthy' when the app answers")
    started_at: datetime = Field(..., description="When the application finished its startup")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    success: bool = Field(False, description="Always false for error responses")
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict] = Field(None, description="Additional error details")
