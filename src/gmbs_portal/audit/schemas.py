"""Pydantic schemas for the audit API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class AuditEventResponse(BaseModel):
    id: str
    tenant_id: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    actor: str
    details: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}
