"""Tenant API authentication (key id + bcrypt secret + optional timestamp)."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import (
    InsufficientScope,
    InvalidKey,
    InvalidSecret,
    MissingCredentials,
    StaleRequest,
    SubscriptionInactive,
    TenantInactive,
)
from gmbs_portal.common.models import utcnow
from gmbs_portal.common.tasks import stamp_best_effort
from gmbs_portal.keygen.generator import verify_api_secret
from gmbs_portal.tenants.models import ACTIVE_STATUSES, ApiKeyModel, TenantModel
from gmbs_portal.tenants.service import TenantService

logger = logging.getLogger(__name__)


@dataclass
class TenantAuthContext:
    """Authenticated tenant and the key it used."""
    tenant: TenantModel
    api_key: ApiKeyModel

    @property
    def tenant_id(self) -> str:
        return self.tenant.id


class TenantAuthenticator:
    """Validates inbound tenant API calls.

    Check order: credentials present, timestamp drift, key lookup (non-revoked
    only), bcrypt verify, scope, tenant active, subscription status. The
    bcrypt verify always runs, against a dummy hash when the key id is
    unknown, so unknown keys and wrong secrets cost the same.
    """

    def __init__(self, settings: PortalSettings, tenant_service: TenantService):
        self.settings = settings
        self.tenants = tenant_service

    def check_timestamp(self, timestamp: str | None, now: datetime | None = None) -> None:
        """Reject timestamps (epoch millis) outside the allowed drift.

        A missing timestamp is tolerated.
        """
        if not timestamp:
            return
        try:
            request_ms = int(timestamp)
        except (TypeError, ValueError):
            raise StaleRequest()
        now_ms = int((now or utcnow()).timestamp() * 1000)
        if abs(now_ms - request_ms) > self.settings.timestamp_drift_seconds * 1000:
            raise StaleRequest()

    async def authenticate(
        self,
        session: AsyncSession,
        key_id: str | None,
        secret: str | None,
        timestamp: str | None = None,
        required_scope: str | None = None,
        now: datetime | None = None,
        require_subscription: bool = True,
    ) -> TenantAuthContext:
        if not key_id or not secret:
            raise MissingCredentials()

        self.check_timestamp(timestamp, now=now)

        api_key = await self.tenants.get_active_key(session, key_id)
        secret_ok = await run_in_threadpool(
            verify_api_secret,
            secret,
            api_key.key_secret_hash if api_key else None,
            self.settings.bcrypt_rounds,
        )
        if api_key is None:
            raise InvalidKey()
        if not secret_ok:
            logger.warning("Invalid API secret", extra={"key_id": key_id})
            raise InvalidSecret()

        if required_scope and required_scope not in (api_key.scopes or []):
            raise InsufficientScope(required_scope)

        tenant = await self.tenants.get_by_id(session, api_key.tenant_id)
        if tenant is None or not tenant.is_active:
            raise TenantInactive()

        if require_subscription and tenant.subscription_status not in ACTIVE_STATUSES:
            raise SubscriptionInactive(tenant.subscription_status)

        await stamp_best_effort(session, api_key, "last_used_at", now or utcnow())
        return TenantAuthContext(tenant=tenant, api_key=api_key)
