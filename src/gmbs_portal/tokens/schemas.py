"""Pydantic schemas for portal token endpoints."""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

# Free-form artisan metadata: string keys to primitive values.
MetadataValue = Union[str, int, float, bool, None]


class TokenCreate(BaseModel):
    crm_artisan_id: str = Field(..., min_length=1, max_length=255)
    crm_intervention_id: Optional[str] = Field(None, max_length=255)
    metadata: dict[str, MetadataValue] = {}


class TokenCreateResponse(BaseModel):
    """The raw token is returned exactly once."""
    token: str
    portal_url: str
    expires_at: datetime
    created_at: datetime


class TokenValidateResponse(BaseModel):
    valid: bool
    artisan: Optional[dict[str, Any]] = None
    intervention_id: Optional[str] = None
    error: Optional[str] = None
