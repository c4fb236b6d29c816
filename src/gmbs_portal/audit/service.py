"""Audit service: append-only record of sensitive actions."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.audit.models import AuditLogModel

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only audit trail keyed by tenant."""

    async def record(
        self,
        session: AsyncSession,
        tenant_id: str,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        details: dict[str, Any] | None = None,
        actor: str = "system",
    ) -> AuditLogModel:
        """Append an audit entry in the caller's transaction."""
        entry = AuditLogModel(
            tenant_id=tenant_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            actor=actor,
            details=details or {},
        )
        session.add(entry)
        await session.flush()
        logger.info(
            "audit %s", action,
            extra={"tenant_id": tenant_id, "resource_type": resource_type, "resource_id": resource_id},
        )
        return entry

    async def get_events(
        self,
        session: AsyncSession,
        tenant_id: str,
        event_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLogModel]:
        """Paginated entries for a tenant, newest first."""
        query = select(AuditLogModel).where(AuditLogModel.tenant_id == tenant_id)
        if event_type:
            query = query.where(AuditLogModel.action == event_type)
        query = (
            query.order_by(AuditLogModel.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())
