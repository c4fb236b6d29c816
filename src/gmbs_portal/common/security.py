"""Authentication dependencies for the tenant and admin APIs."""

import hmac

from fastapi import Depends, Header, Request

from gmbs_portal.common.exceptions import AuthorizationFailure, MissingCredentials
from gmbs_portal.deps import ServiceContainer, get_container
from gmbs_portal.tenants.auth import TenantAuthContext
from gmbs_portal.tokens.service import PortalTokenContext

PORTAL_TOKEN_HEADER = "X-Portal-Token"


async def require_super_admin(
    x_gmbs_admin_key: str | None = Header(None, alias="X-GMBS-Admin-Key"),
    container: ServiceContainer = Depends(get_container),
) -> str:
    """FastAPI dependency that validates the super-admin key header."""
    if not x_gmbs_admin_key:
        raise MissingCredentials("Missing X-GMBS-Admin-Key header")
    if not hmac.compare_digest(x_gmbs_admin_key, container.settings.super_admin_key):
        raise AuthorizationFailure("Invalid super-admin key", code="INVALID_ADMIN_KEY")
    return x_gmbs_admin_key


def require_tenant(scope: str | None = None, require_subscription: bool = True):
    """Build a dependency authenticating the X-GMBS-* header triple.

    The authenticated tenant is loaded in its own short session; handlers
    open their own session for the work itself.
    ``require_subscription=False`` admits lapsed subscriptions (status reporting).
    """

    async def dependency(
        x_gmbs_key_id: str | None = Header(None, alias="X-GMBS-Key-Id"),
        x_gmbs_secret: str | None = Header(None, alias="X-GMBS-Secret"),
        x_gmbs_timestamp: str | None = Header(None, alias="X-GMBS-Timestamp"),
        container: ServiceContainer = Depends(get_container),
    ) -> TenantAuthContext:
        async with container.db.get_session() as session:
            return await container.tenant_auth.authenticate(
                session,
                x_gmbs_key_id,
                x_gmbs_secret,
                timestamp=x_gmbs_timestamp,
                required_scope=scope,
                require_subscription=require_subscription,
            )

    return dependency


def token_from_request(request: Request, body_token: str | None = None) -> str | None:
    """Portal token from the query string, the X-Portal-Token header, then the body/form."""
    return (
        request.query_params.get("token")
        or request.headers.get(PORTAL_TOKEN_HEADER)
        or body_token
        or None
    )


async def authenticate_portal(
    container: ServiceContainer,
    session,
    request: Request,
    body_token: str | None = None,
    require_intervention: bool = False,
) -> PortalTokenContext:
    return await container.tokens.authenticate(
        session,
        token_from_request(request, body_token),
        require_intervention=require_intervention,
    )
