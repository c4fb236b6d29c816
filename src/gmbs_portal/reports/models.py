"""SQLAlchemy model for intervention reports."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from gmbs_portal.common.models import Base, TimestampMixin, generate_uuid

REPORT_DRAFT = "draft"
REPORT_SUBMITTED = "submitted"


class InterventionReportModel(Base, TimestampMixin):
    __tablename__ = "intervention_reports"
    __table_args__ = (
        # Partial index: at most one draft per (tenant, artisan, intervention)
        Index(
            "uq_intervention_report_draft",
            "tenant_id", "crm_artisan_id", "crm_intervention_id",
            unique=True,
            sqlite_where=text("status = 'draft'"),
            postgresql_where=text("status = 'draft'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    portal_token_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("portal_tokens.id"), nullable=True
    )
    crm_artisan_id: Mapped[str] = mapped_column(String(255), nullable=False)
    crm_intervention_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    photo_ids: Mapped[list] = mapped_column(JSON, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=REPORT_DRAFT, index=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
