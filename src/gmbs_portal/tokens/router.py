"""Portal token router: issuance (tenant API) and public validation."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gmbs_portal.common.exceptions import PortalError
from gmbs_portal.common.security import require_tenant
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.tenants.auth import TenantAuthContext
from gmbs_portal.tokens.schemas import (
    TokenCreate,
    TokenCreateResponse,
    TokenValidateResponse,
)

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.post("", response_model=TokenCreateResponse)
async def create_token(
    body: TokenCreate,
    auth: TenantAuthContext = Depends(require_tenant("tokens:write")),
    container: ServiceContainer = Depends(get_container),
):
    async with container.db.get_session() as session:
        issued = await container.tokens.issue(
            session,
            auth.tenant,
            body.crm_artisan_id,
            crm_intervention_id=body.crm_intervention_id,
            metadata=body.metadata,
            actor=auth.api_key.key_id,
        )
    return TokenCreateResponse(
        token=issued.token,
        portal_url=issued.portal_url,
        expires_at=issued.expires_at,
        created_at=issued.created_at,
    )


@router.get("/{token}/validate", response_model=TokenValidateResponse)
async def validate_token(
    token: str,
    container: ServiceContainer = Depends(get_container),
):
    """Public endpoint used by the portal UI to open an artisan session."""
    try:
        async with container.db.get_session() as session:
            ctx = await container.tokens.authenticate(session, token, not_found_status=404)
    except PortalError as exc:
        return JSONResponse(
            status_code=exc.status_code,
            content={"valid": False, "error": exc.message, "code": exc.code},
        )
    return TokenValidateResponse(
        valid=True,
        artisan={**ctx.metadata, "crm_id": ctx.artisan_id},
        intervention_id=ctx.intervention_id,
    )
