"""Pydantic schemas for tenant administration and subscription status."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TenantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    plan: str = "basic"
    subscription_status: str = "trial"
    allowed_artisans: Optional[int] = Field(None, ge=0)
    stripe_customer_id: Optional[str] = None
    scopes: Optional[list[str]] = None


class TenantResponse(BaseModel):
    id: str
    name: str
    subscription_status: str
    subscription_plan: str
    allowed_artisans: int
    is_active: bool
    stripe_customer_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ApiKeyResponse(BaseModel):
    key_id: str
    label: str
    scopes: list[str]
    created_at: datetime
    revoked_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ApiKeyCreate(BaseModel):
    label: str = Field("Production", min_length=1, max_length=100)
    scopes: Optional[list[str]] = None


class ApiKeyCreateResponse(ApiKeyResponse):
    """Includes the raw secret: only returned once at creation time."""
    secret: str


class TenantCreateResponse(TenantResponse):
    api_key: ApiKeyCreateResponse


class TenantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    subscription_status: Optional[str] = None
    subscription_plan: Optional[str] = None
    allowed_artisans: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class SubscriptionLimits(BaseModel):
    artisans: int


class SubscriptionUsage(BaseModel):
    artisans: int


class SubscriptionStatusResponse(BaseModel):
    active: bool
    status: str
    plan: str
    limits: SubscriptionLimits
    usage: SubscriptionUsage
    features: list[str]
