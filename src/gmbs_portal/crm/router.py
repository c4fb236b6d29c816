"""Artisan-authenticated pass-through to the CRM's portal-external API."""

from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from gmbs_portal.common.security import authenticate_portal
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.tokens.service import PortalTokenContext

router = APIRouter(prefix="/portal/crm", tags=["crm"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CRMDocumentUpload(_CamelModel):
    token: Optional[str] = None
    kind: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)
    base64_data: str = Field(..., min_length=1)


class CRMReportPhoto(_CamelModel):
    filename: str
    mime_type: str
    comment: Optional[str] = None
    base64_data: str


class CRMReportSubmit(_CamelModel):
    token: Optional[str] = None
    content: str = Field(..., min_length=1)
    photos: Optional[list[CRMReportPhoto]] = None
    status: Literal["draft", "submitted"] = "submitted"


async def _artisan(
    container: ServiceContainer, request: Request, body_token: str | None = None,
) -> PortalTokenContext:
    # Token check only; the CRM call itself happens outside any DB transaction.
    async with container.db.get_session() as session:
        return await authenticate_portal(container, session, request, body_token=body_token)


@router.get("/interventions")
async def artisan_interventions(
    request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request)
    return await container.crm.get_artisan_interventions(ctx.artisan_id)


@router.get("/interventions/{intervention_id}")
async def intervention_detail(
    intervention_id: str, request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request)
    return await container.crm.get_intervention_detail(intervention_id, ctx.artisan_id)


@router.get("/interventions/{intervention_id}/documents")
async def intervention_documents(
    intervention_id: str, request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request)
    return await container.crm.get_intervention_documents(intervention_id, ctx.artisan_id)


@router.get("/documents")
async def artisan_documents(
    request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request)
    return await container.crm.get_artisan_documents(ctx.artisan_id)


@router.post("/documents")
async def upload_artisan_document(
    body: CRMDocumentUpload, request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request, body.token)
    return await container.crm.upload_artisan_document(
        ctx.artisan_id,
        kind=body.kind,
        filename=body.filename,
        mime_type=body.mime_type,
        base64_data=body.base64_data,
    )


@router.get("/interventions/{intervention_id}/report")
async def intervention_report(
    intervention_id: str, request: Request, container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request)
    return await container.crm.get_intervention_report(intervention_id, ctx.artisan_id)


@router.post("/interventions/{intervention_id}/report")
async def submit_intervention_report(
    intervention_id: str,
    body: CRMReportSubmit,
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> dict[str, Any]:
    ctx = await _artisan(container, request, body.token)
    photos = None
    if body.photos is not None:
        photos = [p.model_dump(by_alias=True, exclude_none=True) for p in body.photos]
    return await container.crm.submit_intervention_report(
        intervention_id,
        ctx.artisan_id,
        content=body.content,
        photos=photos,
        status=body.status,
    )
