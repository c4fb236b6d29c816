"""SQLAlchemy model for artisan portal tokens."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from gmbs_portal.common.models import Base, TimestampMixin, generate_uuid


class PortalTokenModel(Base, TimestampMixin):
    __tablename__ = "portal_tokens"
    __table_args__ = (
        Index(
            "ix_portal_tokens_tenant_artisan_active",
            "tenant_id", "crm_artisan_id", "is_active",
        ),
        # Partial index: at most one active token per (tenant, artisan)
        Index(
            "uq_portal_token_active_artisan",
            "tenant_id", "crm_artisan_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenants.id"), nullable=False, index=True
    )
    crm_artisan_id: Mapped[str] = mapped_column(String(255), nullable=False)
    crm_intervention_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    token_prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    metadata_: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_accessed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
