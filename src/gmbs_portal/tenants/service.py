"""Tenant and API key management service."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import NotFound, ValidationFailure
from gmbs_portal.common.models import utcnow
from gmbs_portal.keygen.generator import generate_api_credentials, hash_api_secret
from gmbs_portal.tenants.models import (
    SUBSCRIPTION_PLANS,
    SUBSCRIPTION_STATUSES,
    ApiKeyModel,
    TenantModel,
)
from gmbs_portal.tenants.plans import DEFAULT_SCOPES, KNOWN_SCOPES, get_artisan_limit

logger = logging.getLogger(__name__)


class TenantService:
    """Tenant lifecycle and credential issuance."""

    def __init__(self, settings: PortalSettings, audit_service=None):
        self.settings = settings
        self.audit_service = audit_service

    # ── Tenants ──

    async def create_tenant(
        self,
        session: AsyncSession,
        name: str,
        plan: str = "basic",
        subscription_status: str = "trial",
        allowed_artisans: int | None = None,
        stripe_customer_id: str | None = None,
        stripe_subscription_id: str | None = None,
        scopes: list[str] | None = None,
        actor: str = "system",
    ) -> tuple[TenantModel, ApiKeyModel, str]:
        """Create a tenant with its first API key.

        Returns (tenant, api_key, raw_secret). The secret is only available here.
        """
        self._check_plan(plan)
        self._check_status(subscription_status)
        tenant = TenantModel(
            name=name,
            subscription_status=subscription_status,
            subscription_plan=plan,
            allowed_artisans=allowed_artisans if allowed_artisans is not None else get_artisan_limit(plan),
            is_active=True,
            stripe_customer_id=stripe_customer_id,
            stripe_subscription_id=stripe_subscription_id,
        )
        session.add(tenant)
        await session.flush()

        api_key, secret = await self.issue_api_key(session, tenant.id, scopes=scopes, actor=actor)

        if self.audit_service:
            await self.audit_service.record(
                session, tenant.id, "tenant.created", "tenant", tenant.id,
                {"plan": plan, "allowed_artisans": tenant.allowed_artisans,
                 "stripe_customer_id": stripe_customer_id},
                actor=actor,
            )
        logger.info("Tenant created", extra={"tenant_id": tenant.id, "plan": plan})
        return tenant, api_key, secret

    async def get_by_id(
        self, session: AsyncSession, tenant_id: str
    ) -> TenantModel | None:
        return await session.get(TenantModel, tenant_id)

    async def get_by_stripe_customer(
        self, session: AsyncSession, stripe_customer_id: str
    ) -> TenantModel | None:
        result = await session.execute(
            select(TenantModel).where(TenantModel.stripe_customer_id == stripe_customer_id)
        )
        return result.scalar_one_or_none()

    async def list_tenants(self, session: AsyncSession) -> list[TenantModel]:
        result = await session.execute(select(TenantModel).order_by(TenantModel.created_at))
        return list(result.scalars().all())

    async def update_tenant(
        self, session: AsyncSession, tenant_id: str, actor: str = "system", **updates: Any
    ) -> TenantModel:
        tenant = await self.get_by_id(session, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")

        if updates.get("subscription_plan") is not None:
            self._check_plan(updates["subscription_plan"])
        if updates.get("subscription_status") is not None:
            self._check_status(updates["subscription_status"])

        changed = {}
        for field in ("name", "subscription_status", "subscription_plan",
                      "allowed_artisans", "is_active"):
            if field in updates and updates[field] is not None:
                setattr(tenant, field, updates[field])
                changed[field] = updates[field]
        await session.flush()

        if self.audit_service and changed:
            action = (
                "subscription.changed"
                if {"subscription_status", "subscription_plan", "allowed_artisans"} & changed.keys()
                else "tenant.updated"
            )
            await self.audit_service.record(
                session, tenant.id, action, "tenant", tenant.id, changed, actor=actor,
            )
        return tenant

    # ── API keys ──

    async def issue_api_key(
        self,
        session: AsyncSession,
        tenant_id: str,
        scopes: list[str] | None = None,
        label: str = "Production",
        actor: str = "system",
    ) -> tuple[ApiKeyModel, str]:
        """Create an API key for a tenant. Returns (model, raw_secret)."""
        if scopes is not None:
            unknown = sorted(set(scopes) - KNOWN_SCOPES)
            if unknown:
                raise ValidationFailure(f"Unknown scopes: {', '.join(unknown)}")
        creds = generate_api_credentials()
        api_key = ApiKeyModel(
            tenant_id=tenant_id,
            key_id=creds.key_id,
            key_secret_hash=hash_api_secret(creds.secret, rounds=self.settings.bcrypt_rounds),
            label=label,
            scopes=list(scopes) if scopes is not None else list(DEFAULT_SCOPES),
        )
        session.add(api_key)
        await session.flush()

        if self.audit_service:
            await self.audit_service.record(
                session, tenant_id, "api_key.created", "api_key", api_key.id,
                {"key_id": api_key.key_id, "scopes": api_key.scopes}, actor=actor,
            )
        return api_key, creds.secret

    async def get_active_key(
        self, session: AsyncSession, key_id: str
    ) -> ApiKeyModel | None:
        """Look up a key by its public id among non-revoked keys only."""
        result = await session.execute(
            select(ApiKeyModel).where(
                ApiKeyModel.key_id == key_id,
                ApiKeyModel.revoked_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def list_api_keys(
        self, session: AsyncSession, tenant_id: str
    ) -> list[ApiKeyModel]:
        result = await session.execute(
            select(ApiKeyModel)
            .where(ApiKeyModel.tenant_id == tenant_id)
            .order_by(ApiKeyModel.created_at)
        )
        return list(result.scalars().all())

    async def revoke_api_key(
        self, session: AsyncSession, key_id: str, actor: str = "system",
    ) -> ApiKeyModel:
        """Revoke a key. Revoking an already-revoked key is a no-op."""
        result = await session.execute(
            select(ApiKeyModel).where(ApiKeyModel.key_id == key_id)
        )
        api_key = result.scalar_one_or_none()
        if api_key is None:
            raise NotFound("API key not found")
        if api_key.revoked_at is None:
            api_key.revoked_at = utcnow()
            await session.flush()
            if self.audit_service:
                await self.audit_service.record(
                    session, api_key.tenant_id, "api_key.revoked", "api_key", api_key.id,
                    {"key_id": api_key.key_id}, actor=actor,
                )
        return api_key

    # ── Validation helpers ──

    @staticmethod
    def _check_plan(plan: str) -> None:
        if plan not in SUBSCRIPTION_PLANS:
            raise ValidationFailure(
                f"Unknown plan: {plan}. Must be one of {', '.join(SUBSCRIPTION_PLANS)}"
            )

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in SUBSCRIPTION_STATUSES:
            raise ValidationFailure(
                f"Unknown subscription status: {status}. "
                f"Must be one of {', '.join(SUBSCRIPTION_STATUSES)}"
            )
