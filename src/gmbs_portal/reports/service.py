"""Intervention report workflow: draft -> submitted.

A (tenant, artisan, intervention) triple has at most one draft; generation
updates it in place. Submission is terminal. The CRM notification that
follows a submission is best-effort and runs after the transaction commits.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import (
    AlreadySubmitted,
    Conflict,
    NotFound,
    PreconditionFailed,
    ValidationFailure,
)
from gmbs_portal.common.models import utcnow
from gmbs_portal.portal.models import InterventionPhotoModel
from gmbs_portal.portal.service import PhotoService
from gmbs_portal.reports.models import REPORT_DRAFT, REPORT_SUBMITTED, InterventionReportModel
from gmbs_portal.reports.templates import render_report
from gmbs_portal.submissions.service import SubmissionLedger
from gmbs_portal.tokens.service import PortalTokenContext

logger = logging.getLogger(__name__)


@dataclass
class SubmittedReport:
    """What the caller needs to notify the CRM once the submission commits."""
    report: InterventionReportModel
    tenant_id: str
    artisan_id: str
    intervention_id: str
    photo_count: int


class ReportWorkflow:
    def __init__(
        self,
        settings: PortalSettings,
        ledger: SubmissionLedger,
        photos: PhotoService,
        audit_service=None,
    ):
        self.settings = settings
        self.ledger = ledger
        self.photos = photos
        self.audit_service = audit_service

    # ── Queries ──

    async def get_latest(
        self, session: AsyncSession, ctx: PortalTokenContext, intervention_id: str,
    ) -> InterventionReportModel | None:
        if not intervention_id:
            raise ValidationFailure("interventionId required")
        result = await session.execute(
            select(InterventionReportModel)
            .where(
                InterventionReportModel.tenant_id == ctx.tenant_id,
                InterventionReportModel.crm_artisan_id == ctx.artisan_id,
                InterventionReportModel.crm_intervention_id == intervention_id,
            )
            .order_by(InterventionReportModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_draft(
        self, session: AsyncSession, tenant_id: str, artisan_id: str, intervention_id: str,
    ) -> InterventionReportModel | None:
        result = await session.execute(
            select(InterventionReportModel).where(
                InterventionReportModel.tenant_id == tenant_id,
                InterventionReportModel.crm_artisan_id == artisan_id,
                InterventionReportModel.crm_intervention_id == intervention_id,
                InterventionReportModel.status == REPORT_DRAFT,
            )
        )
        return result.scalar_one_or_none()

    async def get_latest_submitted(
        self, session: AsyncSession, tenant_id: str, artisan_id: str, intervention_id: str,
    ) -> tuple[InterventionReportModel | None, list[InterventionPhotoModel]]:
        """Latest submitted report for the tenant-facing API, with its photos."""
        if not artisan_id:
            raise ValidationFailure("artisanId required")
        result = await session.execute(
            select(InterventionReportModel)
            .where(
                InterventionReportModel.tenant_id == tenant_id,
                InterventionReportModel.crm_artisan_id == artisan_id,
                InterventionReportModel.crm_intervention_id == intervention_id,
                InterventionReportModel.status == REPORT_SUBMITTED,
            )
            .order_by(InterventionReportModel.submitted_at.desc())
            .limit(1)
        )
        report = result.scalar_one_or_none()
        if report is None:
            return None, []
        photos = await self.photos.get_by_ids(session, tenant_id, list(report.photo_ids or []))
        return report, photos

    # ── Transitions ──

    async def generate(
        self, session: AsyncSession, ctx: PortalTokenContext, intervention_id: str,
    ) -> InterventionReportModel:
        """Create the draft, or rewrite the existing one, from the attached photos."""
        photos = await self.photos.list_photos(session, ctx, intervention_id)
        if not photos:
            raise PreconditionFailed("Ajoutez au moins une photo avant de générer le rapport")

        artisan_name = str((ctx.metadata or {}).get("name") or "Artisan")
        content = render_report(intervention_id, artisan_name, photos)
        photo_ids = [p.id for p in photos]

        report = await self.get_draft(session, ctx.tenant_id, ctx.artisan_id, intervention_id)
        if report is not None:
            report.content = content
            report.photo_ids = photo_ids
            await session.flush()
            return report

        report = InterventionReportModel(
            tenant_id=ctx.tenant_id,
            portal_token_id=ctx.token_id,
            crm_artisan_id=ctx.artisan_id,
            crm_intervention_id=intervention_id,
            content=content,
            photo_ids=photo_ids,
            status=REPORT_DRAFT,
        )
        session.add(report)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise Conflict(
                "A draft report was created concurrently; retry", code="REPORT_CONFLICT",
            ) from exc
        logger.info(
            "Report draft created",
            extra={"tenant_id": ctx.tenant_id, "report_id": report.id, "photo_count": len(photo_ids)},
        )
        return report

    async def _get_owned(
        self,
        session: AsyncSession,
        ctx: PortalTokenContext,
        intervention_id: str,
        report_id: str,
    ) -> InterventionReportModel:
        if not intervention_id or not report_id:
            raise ValidationFailure("interventionId and reportId required")
        result = await session.execute(
            select(InterventionReportModel).where(
                InterventionReportModel.id == report_id,
                InterventionReportModel.tenant_id == ctx.tenant_id,
                InterventionReportModel.crm_artisan_id == ctx.artisan_id,
                InterventionReportModel.crm_intervention_id == intervention_id,
            )
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFound("Report not found")
        return report

    async def update_draft(
        self,
        session: AsyncSession,
        ctx: PortalTokenContext,
        intervention_id: str,
        report_id: str,
        content: str,
    ) -> InterventionReportModel:
        """Edit draft content and re-snapshot the attached photos."""
        report = await self._get_owned(session, ctx, intervention_id, report_id)
        if report.status != REPORT_DRAFT:
            raise AlreadySubmitted()
        photos = await self.photos.list_photos(session, ctx, intervention_id)
        report.content = content
        report.photo_ids = [p.id for p in photos]
        await session.flush()
        return report

    async def submit(
        self,
        session: AsyncSession,
        ctx: PortalTokenContext,
        intervention_id: str,
        report_id: str,
        actor: str = "artisan",
    ) -> SubmittedReport:
        report = await self._get_owned(session, ctx, intervention_id, report_id)
        if report.status == REPORT_SUBMITTED:
            raise AlreadySubmitted()

        now = utcnow()
        report.status = REPORT_SUBMITTED
        report.submitted_at = now

        # Photos deleted since the draft was generated drop out of the snapshot.
        photos = await self.photos.get_by_ids(session, ctx.tenant_id, list(report.photo_ids or []))
        photo_ids = [p.id for p in photos]
        report.photo_ids = photo_ids

        await self.ledger.append(
            session,
            ctx.tenant_id,
            ctx.artisan_id,
            "report",
            {
                "report_id": report.id,
                "content": report.content,
                "photo_ids": photo_ids,
                "photo_count": len(photo_ids),
            },
            storage_paths=[p.storage_path for p in photos],
            portal_token_id=ctx.token_id,
            crm_intervention_id=intervention_id,
            source_id=report.id,
        )

        if photo_ids:
            await session.execute(
                update(InterventionPhotoModel)
                .where(
                    InterventionPhotoModel.tenant_id == ctx.tenant_id,
                    InterventionPhotoModel.crm_artisan_id == ctx.artisan_id,
                    InterventionPhotoModel.id.in_(photo_ids),
                )
                .values(synced_to_crm=True, synced_at=now)
            )
        await session.flush()

        if self.audit_service:
            await self.audit_service.record(
                session, ctx.tenant_id, "report.submitted", "report", report.id,
                {"crm_artisan_id": ctx.artisan_id,
                 "crm_intervention_id": intervention_id,
                 "photo_count": len(photo_ids)},
                actor=actor,
            )
        logger.info(
            "Report submitted",
            extra={"tenant_id": ctx.tenant_id, "report_id": report.id, "photo_count": len(photo_ids)},
        )
        return SubmittedReport(
            report=report,
            tenant_id=ctx.tenant_id,
            artisan_id=ctx.artisan_id,
            intervention_id=intervention_id,
            photo_count=len(photo_ids),
        )

    # ── Outbound ──

    async def notify_crm(self, crm_client, submitted: SubmittedReport) -> bool:
        """Tell the CRM a report landed. Never raises; returns delivery success."""
        try:
            await crm_client.notify_report_submitted(
                submitted.intervention_id,
                artisan_id=submitted.artisan_id,
                report_id=submitted.report.id,
                content=submitted.report.content,
                photo_count=submitted.photo_count,
            )
        except Exception:
            logger.warning(
                "CRM report notification failed",
                extra={"tenant_id": submitted.tenant_id, "report_id": submitted.report.id},
                exc_info=True,
            )
            return False
        logger.info("CRM notified of report", extra={"report_id": submitted.report.id})
        return True
