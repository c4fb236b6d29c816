"""GMBS Portal exception hierarchy.

Every error carries a machine-readable ``code`` and the HTTP status it maps
to. ``extra`` holds actionable data (quota numbers, subscription status,
offending ids) that is merged into the JSON error body.
"""

from typing import Any


class PortalError(Exception):
    """Base exception for all portal errors."""

    status_code = 500

    def __init__(
        self,
        message: str = "",
        code: str = "PORTAL_ERROR",
        status_code: int | None = None,
        extra: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


# ── 401 ──

class AuthenticationFailure(PortalError):
    status_code = 401

    def __init__(self, message: str = "Authentication failed", code: str = "AUTHENTICATION_FAILED", **kwargs):
        super().__init__(message, code=code, **kwargs)


class MissingCredentials(AuthenticationFailure):
    def __init__(self, message: str = "Missing authentication headers (X-GMBS-Key-Id, X-GMBS-Secret)"):
        super().__init__(message, code="MISSING_CREDENTIALS")


class StaleRequest(AuthenticationFailure):
    def __init__(self, message: str = "Request timestamp too old or invalid"):
        super().__init__(message, code="STALE_REQUEST")


class InvalidKey(AuthenticationFailure):
    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, code="INVALID_KEY")


class InvalidSecret(AuthenticationFailure):
    def __init__(self, message: str = "Invalid API secret"):
        super().__init__(message, code="INVALID_SECRET")


class TenantInactive(AuthenticationFailure):
    def __init__(self, message: str = "Tenant not found or inactive"):
        super().__init__(message, code="TENANT_INACTIVE")


class InvalidToken(AuthenticationFailure):
    def __init__(self, message: str = "Invalid token", status_code: int | None = None):
        super().__init__(message, code="INVALID_TOKEN", status_code=status_code)


class TokenRevoked(AuthenticationFailure):
    def __init__(self, message: str = "Token revoked"):
        super().__init__(message, code="TOKEN_REVOKED")


class TokenExpired(AuthenticationFailure):
    def __init__(self, message: str = "Token expired"):
        super().__init__(message, code="TOKEN_EXPIRED")


# ── 403 ──

class AuthorizationFailure(PortalError):
    status_code = 403

    def __init__(self, message: str = "Forbidden", code: str = "FORBIDDEN", **kwargs):
        super().__init__(message, code=code, **kwargs)


class InsufficientScope(AuthorizationFailure):
    def __init__(self, scope: str):
        super().__init__(
            f"Missing required scope: {scope}",
            code="INSUFFICIENT_SCOPE",
            extra={"required_scope": scope},
        )


class SubscriptionInactive(AuthorizationFailure):
    def __init__(self, status: str):
        super().__init__(
            f"Subscription {status}. Please renew.",
            code="SUBSCRIPTION_INACTIVE",
            extra={"subscription_status": status},
        )


class QuotaExceeded(AuthorizationFailure):
    def __init__(self, limit: int, current: int, upgrade_url: str):
        super().__init__(
            "Artisan limit reached",
            code="QUOTA_EXCEEDED",
            extra={"limit": limit, "current": current, "upgrade_url": upgrade_url},
        )


class CrossTenantReference(AuthorizationFailure):
    def __init__(self, invalid_ids: list[str]):
        super().__init__(
            "Some submission IDs do not belong to this tenant",
            code="CROSS_TENANT_REFERENCE",
            extra={"invalid_ids": invalid_ids},
        )


# ── 400 ──

class ValidationFailure(PortalError):
    status_code = 400

    def __init__(self, message: str = "Invalid request", code: str = "VALIDATION_FAILED", **kwargs):
        super().__init__(message, code=code, **kwargs)


class TokenRequired(ValidationFailure):
    def __init__(self, message: str = "Token required"):
        super().__init__(message, code="TOKEN_REQUIRED")


class TokenNotLinked(ValidationFailure):
    def __init__(self, message: str = "Token not linked to intervention"):
        super().__init__(message, code="TOKEN_NOT_LINKED")


class PreconditionFailed(ValidationFailure):
    def __init__(self, message: str):
        super().__init__(message, code="PRECONDITION_FAILED")


# ── 404 / 409 ──

class NotFound(PortalError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message, code="NOT_FOUND")


class Conflict(PortalError):
    status_code = 409

    def __init__(self, message: str = "Conflict", code: str = "CONFLICT", **kwargs):
        super().__init__(message, code=code, **kwargs)


class AlreadySubmitted(Conflict):
    def __init__(self, message: str = "Report already submitted"):
        super().__init__(message, code="ALREADY_SUBMITTED", status_code=400)


# ── 5xx ──

class UpstreamFailure(PortalError):
    status_code = 502

    def __init__(self, message: str = "Upstream service failed", status_code: int | None = None):
        super().__init__(message, code="UPSTREAM_FAILURE", status_code=status_code)
