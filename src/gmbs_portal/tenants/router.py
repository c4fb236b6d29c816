"""Tenant API router.

Administration endpoints require the super-admin key; ``/subscription/status``
is called by the tenant itself with its API key pair.
"""

from fastapi import APIRouter, Depends

from gmbs_portal.common.exceptions import NotFound
from gmbs_portal.common.schemas import SuccessResponse
from gmbs_portal.common.security import require_super_admin, require_tenant
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.tenants.auth import TenantAuthContext
from gmbs_portal.tenants.models import ACTIVE_STATUSES
from gmbs_portal.tenants.plans import get_plan_features
from gmbs_portal.tenants.schemas import (
    ApiKeyCreate,
    ApiKeyCreateResponse,
    ApiKeyResponse,
    SubscriptionLimits,
    SubscriptionStatusResponse,
    SubscriptionUsage,
    TenantCreate,
    TenantCreateResponse,
    TenantResponse,
    TenantUpdate,
)

router = APIRouter(prefix="/tenants", tags=["tenants"])
subscription_router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.post("", response_model=TenantCreateResponse, status_code=201)
async def create_tenant(
    body: TenantCreate,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        tenant, api_key, secret = await container.tenants.create_tenant(
            session,
            name=body.name,
            plan=body.plan,
            subscription_status=body.subscription_status,
            allowed_artisans=body.allowed_artisans,
            stripe_customer_id=body.stripe_customer_id,
            scopes=body.scopes,
            actor="admin",
        )
        return TenantCreateResponse(
            **TenantResponse.model_validate(tenant).model_dump(),
            api_key=ApiKeyCreateResponse(
                **ApiKeyResponse.model_validate(api_key).model_dump(), secret=secret,
            ),
        )


@router.get("", response_model=list[TenantResponse])
async def list_tenants(
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        tenants = await container.tenants.list_tenants(session)
        return [TenantResponse.model_validate(t) for t in tenants]


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant_id: str,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        tenant = await container.tenants.get_by_id(session, tenant_id)
        if tenant is None:
            raise NotFound("Tenant not found")
        return TenantResponse.model_validate(tenant)


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        tenant = await container.tenants.update_tenant(
            session, tenant_id, actor="admin", **body.model_dump(exclude_unset=True),
        )
        return TenantResponse.model_validate(tenant)


@router.get("/{tenant_id}/api-keys", response_model=list[ApiKeyResponse])
async def list_api_keys(
    tenant_id: str,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        if await container.tenants.get_by_id(session, tenant_id) is None:
            raise NotFound("Tenant not found")
        keys = await container.tenants.list_api_keys(session, tenant_id)
        return [ApiKeyResponse.model_validate(k) for k in keys]


@router.post("/{tenant_id}/api-keys", response_model=ApiKeyCreateResponse, status_code=201)
async def issue_api_key(
    tenant_id: str,
    body: ApiKeyCreate,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        if await container.tenants.get_by_id(session, tenant_id) is None:
            raise NotFound("Tenant not found")
        api_key, secret = await container.tenants.issue_api_key(
            session, tenant_id, scopes=body.scopes, label=body.label, actor="admin",
        )
        return ApiKeyCreateResponse(
            **ApiKeyResponse.model_validate(api_key).model_dump(), secret=secret,
        )


@router.delete("/{tenant_id}/api-keys/{key_id}", response_model=SuccessResponse)
async def revoke_api_key(
    tenant_id: str,
    key_id: str,
    _=Depends(require_super_admin),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        keys = await container.tenants.list_api_keys(session, tenant_id)
        if key_id not in {k.key_id for k in keys}:
            raise NotFound("API key not found")
        await container.tenants.revoke_api_key(session, key_id, actor="admin")
        return SuccessResponse()


@subscription_router.get("/status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    auth: TenantAuthContext = Depends(require_tenant(require_subscription=False)),
    container: ServiceContainer = Depends(get_container),
):
    tenant = auth.tenant
    async with container.db.get_session() as session:
        usage = await container.tokens.count_active_artisans(session, tenant.id)
    return SubscriptionStatusResponse(
        active=tenant.subscription_status in ACTIVE_STATUSES,
        status=tenant.subscription_status,
        plan=tenant.subscription_plan,
        limits=SubscriptionLimits(artisans=tenant.allowed_artisans),
        usage=SubscriptionUsage(artisans=usage),
        features=get_plan_features(tenant.subscription_plan),
    )
