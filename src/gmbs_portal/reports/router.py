"""Tenant-facing report lookup (used by the CRM to display a submitted report)."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from gmbs_portal.common.models import as_utc
from gmbs_portal.common.security import require_tenant
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.tenants.auth import TenantAuthContext

router = APIRouter(prefix="/interventions", tags=["reports"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmittedReportResponse(_CamelModel):
    id: str
    content: str
    status: str
    created_at: datetime
    submitted_at: Optional[datetime] = None


class ReportPhotoResponse(_CamelModel):
    id: str
    url: str
    filename: str
    comment: Optional[str] = None


class InterventionReportResponse(_CamelModel):
    report: Optional[SubmittedReportResponse] = None
    photos: list[ReportPhotoResponse] = []


@router.get("/{intervention_id}/report", response_model=InterventionReportResponse)
async def get_intervention_report(
    intervention_id: str,
    artisan_id: Optional[str] = Query(None, alias="artisanId"),
    auth: TenantAuthContext = Depends(require_tenant()),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        report, photos = await container.reports.get_latest_submitted(
            session, auth.tenant_id, artisan_id, intervention_id,
        )
    if report is None:
        return InterventionReportResponse()

    photo_items = []
    for photo in photos:
        url = container.photos.signed_url(photo)
        # Photos whose blob is gone are left out rather than returned without a URL.
        if url:
            photo_items.append(ReportPhotoResponse(
                id=photo.id, url=url, filename=photo.original_filename, comment=photo.comment,
            ))
    return InterventionReportResponse(
        report=SubmittedReportResponse(
            id=report.id,
            content=report.content,
            status=report.status,
            created_at=as_utc(report.created_at),
            submitted_at=as_utc(report.submitted_at),
        ),
        photos=photo_items,
    )
