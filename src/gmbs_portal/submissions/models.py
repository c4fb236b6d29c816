"""SQLAlchemy model for the submission ledger."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from gmbs_portal.common.models import Base, TimestampMixin, generate_uuid

SUBMISSION_TYPES = ("photo", "report", "document")


class SubmissionModel(Base, TimestampMixin):
    __tablename__ = "portal_submissions"
    __table_args__ = (
        Index("ix_portal_submissions_tenant_synced_created", "tenant_id", "synced_to_crm", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    portal_token_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("portal_tokens.id"), nullable=True
    )
    crm_artisan_id: Mapped[str] = mapped_column(String(255), nullable=False)
    crm_intervention_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    # Id of the photo/document/report row this entry was emitted for.
    source_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    data: Mapped[dict] = mapped_column(JSON, default=dict)
    storage_paths: Mapped[list] = mapped_column(JSON, default=list)
    synced_to_crm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
