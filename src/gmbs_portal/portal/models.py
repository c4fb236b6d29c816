"""SQLAlchemy models for artisan uploads (intervention photos, legal documents)."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gmbs_portal.common.models import Base, TimestampMixin, generate_uuid


class InterventionPhotoModel(Base, TimestampMixin):
    __tablename__ = "intervention_photos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    portal_token_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("portal_tokens.id"), nullable=True
    )
    crm_artisan_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    crm_intervention_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    synced_to_crm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ArtisanDocumentModel(Base, TimestampMixin):
    __tablename__ = "artisan_documents"
    __table_args__ = (
        UniqueConstraint("tenant_id", "crm_artisan_id", "kind", name="uq_artisan_document_kind"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    portal_token_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("portal_tokens.id"), nullable=True
    )
    crm_artisan_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(50), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False)
