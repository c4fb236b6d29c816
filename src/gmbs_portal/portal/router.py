"""Artisan portal router: photos, legal documents and intervention reports.

Every endpoint authenticates the portal token first (query ``token``,
``X-Portal-Token`` header, then JSON body or form field).
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, Request, UploadFile

from gmbs_portal.common.exceptions import TokenNotLinked, ValidationFailure
from gmbs_portal.common.models import as_utc
from gmbs_portal.common.schemas import SuccessResponse
from gmbs_portal.common.security import authenticate_portal
from gmbs_portal.common.tasks import run_detached
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.portal.models import InterventionPhotoModel
from gmbs_portal.portal.schemas import (
    DocumentListResponse,
    DocumentResponse,
    DocumentStatus,
    DocumentUploadResponse,
    PhotoCommentResponse,
    PhotoCommentUpdate,
    PhotoListResponse,
    PhotoResponse,
    PhotoUpdateResponse,
    PhotoUploadResponse,
    ReportEnvelope,
    ReportGenerateRequest,
    ReportResponse,
    ReportSubmitRequest,
    ReportSubmitResponse,
    ReportUpdateRequest,
)
from gmbs_portal.reports.models import InterventionReportModel
from gmbs_portal.tokens.service import PortalTokenContext

router = APIRouter(prefix="/portal", tags=["portal"])


def _intervention_id(ctx: PortalTokenContext, supplied: str | None) -> str:
    """Explicit intervention id, else the one the token is linked to."""
    intervention_id = supplied or ctx.intervention_id
    if not intervention_id:
        raise TokenNotLinked()
    return intervention_id


async def _read_upload(file: UploadFile | None, max_bytes: int) -> bytes:
    if file is None:
        raise ValidationFailure("file required")
    # One byte over the limit is enough to reject the upload.
    return await file.read(max_bytes + 1)


def _photo_response(container: ServiceContainer, photo: InterventionPhotoModel) -> PhotoResponse:
    return PhotoResponse(
        id=photo.id,
        filename=photo.original_filename,
        url=container.photos.signed_url(photo),
        comment=photo.comment,
        created_at=as_utc(photo.created_at),
    )


def _report_response(report: InterventionReportModel) -> ReportResponse:
    return ReportResponse(
        id=report.id,
        content=report.content,
        status=report.status,
        photo_ids=list(report.photo_ids or []),
        generated_at=as_utc(report.created_at),
        submitted_at=as_utc(report.submitted_at),
    )


# ── Photos ──

@router.get("/photos", response_model=PhotoListResponse)
async def list_photos(
    request: Request,
    intervention_id: Optional[str] = Query(None, alias="interventionId"),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request)
        photos = await container.photos.list_photos(
            session, ctx, _intervention_id(ctx, intervention_id),
        )
        return PhotoListResponse(photos=[_photo_response(container, p) for p in photos])


@router.post("/photos", response_model=PhotoUploadResponse)
async def upload_photo(
    request: Request,
    file: Optional[UploadFile] = File(None),
    token: Optional[str] = Form(None),
    intervention_id: Optional[str] = Form(None, alias="interventionId"),
    comment: Optional[str] = Form(None),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=token)
        data = await _read_upload(file, container.settings.max_upload_bytes)
        photo = await container.photos.upload(
            session,
            ctx,
            _intervention_id(ctx, intervention_id),
            original_filename=file.filename or "",
            content_type=file.content_type,
            data=data,
            comment=comment,
        )
        return PhotoUploadResponse(photo=_photo_response(container, photo))


@router.patch("/photos/{photo_id}", response_model=PhotoUpdateResponse)
async def update_photo_comment(
    photo_id: str,
    body: PhotoCommentUpdate,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=body.token)
        photo = await container.photos.update_comment(session, ctx, photo_id, body.comment)
        return PhotoUpdateResponse(photo=PhotoCommentResponse(id=photo.id, comment=photo.comment))


@router.delete("/photos/{photo_id}", response_model=SuccessResponse)
async def delete_photo(
    photo_id: str,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request)
        await container.photos.delete(session, ctx, photo_id)
    return SuccessResponse()


# ── Documents ──

@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request)
        documents = await container.documents.list_documents(session, ctx)
        return DocumentListResponse(documents=[
            DocumentStatus(kind=d.kind, filename=d.original_filename, uploaded_at=as_utc(d.created_at))
            for d in documents
        ])


@router.post("/documents", response_model=DocumentUploadResponse)
async def upload_document(
    request: Request,
    file: Optional[UploadFile] = File(None),
    token: Optional[str] = Form(None),
    kind: Optional[str] = Form(None),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=token)
        data = await _read_upload(file, container.settings.max_upload_bytes)
        document = await container.documents.upload(
            session,
            ctx,
            kind,
            original_filename=file.filename or "",
            content_type=file.content_type,
            data=data,
        )
        return DocumentUploadResponse(document=DocumentResponse(
            id=document.id,
            kind=document.kind,
            filename=document.original_filename,
            uploaded_at=as_utc(document.created_at),
        ))


# ── Report ──

@router.get("/report", response_model=ReportEnvelope)
async def get_report(
    request: Request,
    intervention_id: Optional[str] = Query(None, alias="interventionId"),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request)
        report = await container.reports.get_latest(
            session, ctx, _intervention_id(ctx, intervention_id),
        )
        return ReportEnvelope(report=_report_response(report) if report else None)


@router.post("/report", response_model=ReportEnvelope)
async def generate_report(
    body: ReportGenerateRequest,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=body.token)
        report = await container.reports.generate(
            session, ctx, _intervention_id(ctx, body.intervention_id),
        )
        return ReportEnvelope(report=_report_response(report))


@router.patch("/report", response_model=ReportEnvelope)
async def update_report(
    body: ReportUpdateRequest,
    request: Request,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=body.token)
        report = await container.reports.update_draft(
            session, ctx, _intervention_id(ctx, body.intervention_id), body.report_id, body.content,
        )
        return ReportEnvelope(report=_report_response(report))


@router.post("/report/submit", response_model=ReportSubmitResponse)
async def submit_report(
    body: ReportSubmitRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        ctx = await authenticate_portal(container, session, request, body_token=body.token)
        submitted = await container.reports.submit(
            session, ctx, _intervention_id(ctx, body.intervention_id), body.report_id,
        )
    # Runs after the response, once the submission above has committed.
    background_tasks.add_task(
        run_detached, container.reports.notify_crm, container.crm, submitted,
        label="crm.report_submitted",
    )
    return ReportSubmitResponse()
