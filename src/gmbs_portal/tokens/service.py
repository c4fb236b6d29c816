"""Portal token service: issuance with rotation and quota, bearer validation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import (
    Conflict,
    InvalidToken,
    QuotaExceeded,
    TokenExpired,
    TokenNotLinked,
    TokenRequired,
    TokenRevoked,
    ValidationFailure,
)
from gmbs_portal.common.models import as_utc, utcnow
from gmbs_portal.common.tasks import stamp_best_effort
from gmbs_portal.keygen.generator import generate_token, token_hash
from gmbs_portal.tenants.models import TenantModel
from gmbs_portal.tokens.models import PortalTokenModel

logger = logging.getLogger(__name__)


@dataclass
class IssuedToken:
    """Result of issuing a token. ``token`` is the only copy of the raw value."""
    token: str
    portal_url: str
    expires_at: datetime
    created_at: datetime
    token_id: str
    rotated: bool = False


@dataclass
class PortalTokenContext:
    """Identity resolved from a valid portal token."""
    token_id: str
    tenant_id: str
    artisan_id: str
    intervention_id: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


class TokenService:
    """Issues, rotates and validates artisan portal tokens."""

    def __init__(self, settings: PortalSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    # ── Queries ──

    async def get_active_tokens(
        self, session: AsyncSession, tenant_id: str, artisan_id: str,
    ) -> list[PortalTokenModel]:
        result = await session.execute(
            select(PortalTokenModel).where(
                PortalTokenModel.tenant_id == tenant_id,
                PortalTokenModel.crm_artisan_id == artisan_id,
                PortalTokenModel.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def count_active_artisans(self, session: AsyncSession, tenant_id: str) -> int:
        """Distinct artisans holding an active token under this tenant."""
        result = await session.execute(
            select(func.count(func.distinct(PortalTokenModel.crm_artisan_id))).where(
                PortalTokenModel.tenant_id == tenant_id,
                PortalTokenModel.is_active.is_(True),
            )
        )
        return result.scalar() or 0

    async def get_by_raw_token(
        self, session: AsyncSession, raw_token: str,
    ) -> PortalTokenModel | None:
        result = await session.execute(
            select(PortalTokenModel).where(
                PortalTokenModel.token_hash == token_hash(raw_token)
            )
        )
        return result.scalar_one_or_none()

    # ── Issue / rotate ──

    async def issue(
        self,
        session: AsyncSession,
        tenant: TenantModel,
        crm_artisan_id: str,
        crm_intervention_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        actor: str = "system",
    ) -> IssuedToken:
        """Issue a new token for an artisan, revoking any previous one.

        Only artisans without an active token count against the quota.
        """
        if not crm_artisan_id:
            raise ValidationFailure("crm_artisan_id is required")

        existing = await self.get_active_tokens(session, tenant.id, crm_artisan_id)

        if not existing:
            current = await self.count_active_artisans(session, tenant.id)
            if current >= tenant.allowed_artisans:
                logger.info(
                    "Artisan quota reached",
                    extra={"tenant_id": tenant.id, "limit": tenant.allowed_artisans, "current": current},
                )
                raise QuotaExceeded(
                    limit=tenant.allowed_artisans,
                    current=current,
                    upgrade_url=f"{self.settings.portal_url.rstrip('/')}/pricing",
                )
        else:
            # Rotation: old tokens are deactivated before the new one exists.
            await session.execute(
                update(PortalTokenModel)
                .where(
                    PortalTokenModel.tenant_id == tenant.id,
                    PortalTokenModel.crm_artisan_id == crm_artisan_id,
                    PortalTokenModel.is_active.is_(True),
                )
                .values(is_active=False)
            )
            await session.flush()

        generated = generate_token()
        now = utcnow()
        token_obj = PortalTokenModel(
            tenant_id=tenant.id,
            crm_artisan_id=crm_artisan_id,
            crm_intervention_id=crm_intervention_id or None,
            token_hash=generated.hash,
            token_prefix=generated.prefix,
            metadata_=dict(metadata or {}),
            expires_at=now + timedelta(days=self.settings.token_lifetime_days),
            is_active=True,
            created_at=now,
        )
        session.add(token_obj)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise Conflict(
                "Another token was issued concurrently for this artisan; retry",
                code="TOKEN_CONFLICT",
            ) from exc

        if self.audit_service:
            await self.audit_service.record(
                session, tenant.id, "token.created", "token", token_obj.id,
                {"crm_artisan_id": crm_artisan_id,
                 "crm_intervention_id": crm_intervention_id,
                 "token_prefix": generated.prefix,
                 "rotated": bool(existing)},
                actor=actor,
            )

        logger.info(
            "Portal token issued",
            extra={"tenant_id": tenant.id, "token_prefix": generated.prefix, "rotated": bool(existing)},
        )
        return IssuedToken(
            token=generated.token,
            portal_url=f"{self.settings.portal_url.rstrip('/')}/t/{generated.token}",
            expires_at=as_utc(token_obj.expires_at),
            created_at=as_utc(token_obj.created_at),
            token_id=token_obj.id,
            rotated=bool(existing),
        )

    # ── Validate ──

    async def authenticate(
        self,
        session: AsyncSession,
        raw_token: str | None,
        require_intervention: bool = False,
        not_found_status: int = 401,
    ) -> PortalTokenContext:
        """Resolve a raw bearer token to its tenant/artisan identity.

        Raises TokenRequired, InvalidToken, TokenRevoked, TokenExpired or
        TokenNotLinked. ``not_found_status`` lets the public validation
        endpoint answer 404 for unknown tokens.
        """
        if not raw_token:
            raise TokenRequired()

        token_obj = await self.get_by_raw_token(session, raw_token)
        if token_obj is None:
            if not_found_status == 404:
                raise InvalidToken("Token not found", status_code=404)
            raise InvalidToken()
        if not token_obj.is_active:
            raise TokenRevoked()

        now = utcnow()
        expires_at = as_utc(token_obj.expires_at)
        if expires_at and expires_at < now:
            raise TokenExpired()

        if require_intervention and not token_obj.crm_intervention_id:
            raise TokenNotLinked()

        await stamp_best_effort(session, token_obj, "last_accessed_at", now)

        return PortalTokenContext(
            token_id=token_obj.id,
            tenant_id=token_obj.tenant_id,
            artisan_id=token_obj.crm_artisan_id,
            intervention_id=token_obj.crm_intervention_id,
            metadata=dict(token_obj.metadata_ or {}),
        )
