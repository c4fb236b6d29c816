"""GMBS Portal configuration via pydantic-settings."""

import json
import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

_INSECURE_DEFAULTS = {
    "super_admin_key": "insecure-super-admin-key-change-me",
    "signing_key": "insecure-signing-key-change-me",
}

# Stripe price id -> (plan, allowed artisans) used when GMBS_STRIPE_PRICE_MAP is empty.
DEFAULT_PRICE_MAP = {
    "price_basic": {"plan": "basic", "artisans": 10},
    "price_pro": {"plan": "pro", "artisans": 50},
    "price_enterprise": {"plan": "enterprise", "artisans": 999},
}


class PortalSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GMBS_")

    environment: str = "development"
    super_admin_key: str = "insecure-super-admin-key-change-me"
    signing_key: str = "insecure-signing-key-change-me"

    # Database
    db_url: str = "sqlite+aiosqlite:///./data/gmbs_portal.db"

    # API
    api_title: str = "GMBS Portal"
    api_version: str = "0.1.0"
    host: str = "0.0.0.0"
    port: int = 8080
    api_prefix: str = ""
    cors_origins: list[str] = ["http://localhost:3000"]
    portal_url: str = "http://localhost:3000"

    # Authentication
    timestamp_drift_seconds: int = 300
    token_lifetime_days: int = 365
    bcrypt_rounds: int = 12

    # Submission ledger
    submissions_default_limit: int = 100
    submissions_max_limit: int = 500
    mark_synced_max_batch: int = 100

    # Uploads / object store
    storage_root: str = "./data/uploads"
    signed_url_ttl: int = 3600  # seconds
    max_upload_bytes: int = 10 * 1024 * 1024

    # CRM collaborator
    crm_base_url: str = "http://localhost:3000"
    crm_key_id: str = ""
    crm_secret: str = ""
    crm_timeout: float = 15.0

    # Billing
    stripe_api_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance: int = 300
    # JSON dict mapping Stripe price id to {"plan": ..., "artisans": ...}
    stripe_price_map: str = ""

    # Email
    email_provider: str = ""
    email_api_key: str = ""
    email_from: str = "portal@gmbs.fr"
    email_from_name: str = "Portal GMBS"

    log_level: str = "INFO"

    @property
    def price_map(self) -> dict[str, dict]:
        """Return the Stripe price catalogue as {price_id: {"plan", "artisans"}}."""
        if self.stripe_price_map:
            try:
                raw = json.loads(self.stripe_price_map)
            except (json.JSONDecodeError, TypeError) as exc:
                raise ValueError(
                    f"GMBS_STRIPE_PRICE_MAP must be valid JSON, got: {self.stripe_price_map!r}"
                ) from exc
            return {str(k): dict(v) for k, v in raw.items()}
        return dict(DEFAULT_PRICE_MAP)

    @property
    def crm_api_url(self) -> str:
        return self.crm_base_url.rstrip("/") + "/api/portal-external"

    def validate_for_production(self) -> None:
        """Raise if insecure defaults are used in non-development environments."""
        insecure_fields = [
            field
            for field, default in _INSECURE_DEFAULTS.items()
            if getattr(self, field) == default
        ]

        if self.environment != "development" and insecure_fields:
            env_vars = ", ".join(f"GMBS_{f.upper()}" for f in insecure_fields)
            raise RuntimeError(
                f"Insecure default values detected in '{self.environment}' environment. "
                f"Set these environment variables to secure values: {env_vars}."
            )

        if insecure_fields:
            warnings.warn(
                "Using insecure default keys: set GMBS_SUPER_ADMIN_KEY and "
                "GMBS_SIGNING_KEY for production",
                UserWarning,
                stacklevel=2,
            )


@lru_cache
def get_settings() -> PortalSettings:
    settings = PortalSettings()
    settings.validate_for_production()
    return settings
