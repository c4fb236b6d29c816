"""Audit trail API router (super-admin)."""

from fastapi import APIRouter, Depends, Query

from gmbs_portal.audit.schemas import AuditEventResponse
from gmbs_portal.common.exceptions import NotFound
from gmbs_portal.common.models import as_utc
from gmbs_portal.common.security import require_super_admin
from gmbs_portal.deps import ServiceContainer, get_container

router = APIRouter(prefix="/tenants", tags=["audit"])


@router.get("/{tenant_id}/audit", response_model=list[AuditEventResponse])
async def get_audit_events(
    tenant_id: str,
    event_type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        if await container.tenants.get_by_id(session, tenant_id) is None:
            raise NotFound("Tenant not found")
        events = await container.audit.get_events(
            session, tenant_id, event_type=event_type, limit=limit, offset=offset,
        )
        return [
            AuditEventResponse(
                id=e.id,
                tenant_id=e.tenant_id,
                action=e.action,
                resource_type=e.resource_type,
                resource_id=e.resource_id,
                actor=e.actor,
                details=e.details or {},
                created_at=as_utc(e.created_at),
            )
            for e in events
        ]
