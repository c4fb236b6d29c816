"""Submission ledger: append from the artisan side, pull + acknowledge from the CRM side."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import CrossTenantReference, ValidationFailure
from gmbs_portal.common.models import utcnow
from gmbs_portal.submissions.models import SUBMISSION_TYPES, SubmissionModel

logger = logging.getLogger(__name__)


@dataclass
class SubmissionPage:
    submissions: list[SubmissionModel]
    has_more: bool

    @property
    def count(self) -> int:
        return len(self.submissions)


def _normalize_since(since: datetime | None) -> datetime | None:
    if since is None:
        return None
    if since.tzinfo is None:
        return since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc)


class SubmissionLedger:
    """Append-only log of artisan-produced artifacts awaiting CRM sync.

    Every read and write is filtered by tenant_id.
    """

    def __init__(self, settings: PortalSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    # ── Append ──

    async def append(
        self,
        session: AsyncSession,
        tenant_id: str,
        crm_artisan_id: str,
        type: str,
        data: dict[str, Any],
        storage_paths: list[str] | None = None,
        portal_token_id: str | None = None,
        crm_intervention_id: str | None = None,
        source_id: str | None = None,
    ) -> SubmissionModel:
        if type not in SUBMISSION_TYPES:
            raise ValidationFailure(f"Unknown submission type: {type}")
        entry = SubmissionModel(
            tenant_id=tenant_id,
            portal_token_id=portal_token_id,
            crm_artisan_id=crm_artisan_id,
            crm_intervention_id=crm_intervention_id,
            type=type,
            source_id=source_id,
            data=data,
            storage_paths=list(storage_paths or []),
            synced_to_crm=False,
        )
        session.add(entry)
        await session.flush()
        logger.debug("Submission appended", extra={"tenant_id": tenant_id, "type": type})
        return entry

    # ── Pull ──

    async def pull(
        self,
        session: AsyncSession,
        tenant_id: str,
        since: datetime | None = None,
        unsynced: bool = True,
        limit: int | None = None,
    ) -> SubmissionPage:
        """Oldest-first page of submissions; ``has_more`` when the page is full."""
        if limit is None:
            limit = self.settings.submissions_default_limit
        limit = max(1, min(limit, self.settings.submissions_max_limit))

        query = select(SubmissionModel).where(SubmissionModel.tenant_id == tenant_id)
        if unsynced:
            query = query.where(SubmissionModel.synced_to_crm.is_(False))
        since = _normalize_since(since)
        if since is not None:
            query = query.where(SubmissionModel.created_at > since)
        query = query.order_by(SubmissionModel.created_at.asc(), SubmissionModel.id.asc()).limit(limit)

        result = await session.execute(query)
        items = list(result.scalars().all())
        return SubmissionPage(submissions=items, has_more=len(items) == limit)

    # ── Acknowledge ──

    async def mark_synced(
        self,
        session: AsyncSession,
        tenant_id: str,
        ids: list[str],
        actor: str = "system",
    ) -> int:
        """Mark a batch of submissions synced. Returns the number newly flipped.

        The whole batch is rejected if any id is not owned by the tenant.
        Already-synced ids are accepted and not counted.
        """
        if not ids:
            raise ValidationFailure("ids array required")
        if len(ids) > self.settings.mark_synced_max_batch:
            raise ValidationFailure(
                f"Maximum {self.settings.mark_synced_max_batch} IDs per request"
            )
        unique_ids = list(dict.fromkeys(ids))

        result = await session.execute(
            select(SubmissionModel.id).where(
                SubmissionModel.tenant_id == tenant_id,
                SubmissionModel.id.in_(unique_ids),
            )
        )
        owned = set(result.scalars().all())
        invalid_ids = [i for i in unique_ids if i not in owned]
        if invalid_ids:
            logger.warning(
                "Cross-tenant mark-synced rejected",
                extra={"tenant_id": tenant_id, "invalid_count": len(invalid_ids)},
            )
            raise CrossTenantReference(invalid_ids)

        result = await session.execute(
            update(SubmissionModel)
            .where(
                SubmissionModel.tenant_id == tenant_id,
                SubmissionModel.id.in_(unique_ids),
                SubmissionModel.synced_to_crm.is_(False),
            )
            .values(synced_to_crm=True, synced_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        marked = result.rowcount or 0

        if self.audit_service:
            await self.audit_service.record(
                session, tenant_id, "submissions.marked_synced", "submission", None,
                {"count": marked, "ids": unique_ids}, actor=actor,
            )
        return marked

    # ── Source cleanup ──

    async def delete_unsynced_for_source(
        self, session: AsyncSession, tenant_id: str, type: str, source_id: str,
    ) -> int:
        """Drop the still-unsynced entries emitted for a deleted artifact."""
        result = await session.execute(
            delete(SubmissionModel)
            .where(
                SubmissionModel.tenant_id == tenant_id,
                SubmissionModel.type == type,
                SubmissionModel.source_id == source_id,
                SubmissionModel.synced_to_crm.is_(False),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
