"""Pydantic schemas for the artisan portal API (camelCase on the wire)."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PortalModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Photos ──

class PhotoResponse(PortalModel):
    id: str
    filename: str
    url: Optional[str] = None
    comment: Optional[str] = None
    created_at: datetime


class PhotoListResponse(PortalModel):
    photos: list[PhotoResponse]


class PhotoUploadResponse(PortalModel):
    success: bool = True
    photo: PhotoResponse


class PhotoCommentUpdate(PortalModel):
    token: Optional[str] = None
    comment: Optional[str] = None


class PhotoCommentResponse(PortalModel):
    id: str
    comment: Optional[str] = None


class PhotoUpdateResponse(PortalModel):
    success: bool = True
    photo: PhotoCommentResponse


# ── Documents ──

class DocumentStatus(PortalModel):
    kind: str
    uploaded: bool = True
    filename: str
    uploaded_at: datetime


class DocumentListResponse(PortalModel):
    documents: list[DocumentStatus]


class DocumentResponse(PortalModel):
    id: str
    kind: str
    filename: str
    uploaded_at: datetime


class DocumentUploadResponse(PortalModel):
    success: bool = True
    document: DocumentResponse


# ── Reports ──

class ReportResponse(PortalModel):
    id: str
    content: str
    status: str
    photo_ids: list[str] = []
    generated_at: datetime
    submitted_at: Optional[datetime] = None


class ReportEnvelope(PortalModel):
    report: Optional[ReportResponse] = None


class ReportGenerateRequest(PortalModel):
    token: Optional[str] = None
    intervention_id: Optional[str] = None


class ReportUpdateRequest(PortalModel):
    token: Optional[str] = None
    intervention_id: Optional[str] = None
    report_id: str
    content: str


class ReportSubmitRequest(PortalModel):
    token: Optional[str] = None
    intervention_id: Optional[str] = None
    report_id: str


class ReportSubmitResponse(PortalModel):
    success: bool = True
    message: str = "Rapport transmis avec succès"
