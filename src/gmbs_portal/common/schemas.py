"""Shared Pydantic schemas for GMBS Portal."""

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    service: str = "gmbs-portal"


class ErrorResponse(BaseModel):
    error: str
    code: str


class SuccessResponse(BaseModel):
    success: bool = True
