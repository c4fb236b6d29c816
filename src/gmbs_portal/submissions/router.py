"""Submission ledger router: pull and acknowledge (tenant API)."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from gmbs_portal.common.security import require_tenant
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.submissions.schemas import (
    MarkSyncedRequest,
    MarkSyncedResponse,
    SubmissionListResponse,
    SubmissionResponse,
)
from gmbs_portal.tenants.auth import TenantAuthContext

router = APIRouter(prefix="/submissions", tags=["submissions"])


@router.get("", response_model=SubmissionListResponse)
async def list_submissions(
    since: Optional[datetime] = Query(None),
    unsynced: bool = Query(True),
    limit: Optional[int] = Query(None),
    auth: TenantAuthContext = Depends(require_tenant("submissions:read")),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        page = await container.ledger.pull(
            session, auth.tenant_id, since=since, unsynced=unsynced, limit=limit,
        )
        return SubmissionListResponse(
            submissions=[SubmissionResponse.model_validate(s) for s in page.submissions],
            count=page.count,
            has_more=page.has_more,
        )


@router.post("/mark-synced", response_model=MarkSyncedResponse)
async def mark_synced(
    body: MarkSyncedRequest,
    auth: TenantAuthContext = Depends(require_tenant("submissions:read")),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        marked = await container.ledger.mark_synced(
            session, auth.tenant_id, body.ids, actor=auth.api_key.key_id,
        )
    return MarkSyncedResponse(marked_count=marked)
