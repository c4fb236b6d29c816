"""Pydantic schemas for the submission ledger endpoints."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class SubmissionResponse(BaseModel):
    id: str
    type: str
    crm_artisan_id: str
    crm_intervention_id: Optional[str] = None
    data: dict[str, Any]
    storage_paths: list[str]
    synced_to_crm: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
    count: int
    has_more: bool


class MarkSyncedRequest(BaseModel):
    ids: list[str]


class MarkSyncedResponse(BaseModel):
    success: bool = True
    marked_count: int
