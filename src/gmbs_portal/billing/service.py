"""Billing service: applies Stripe subscription events to tenants."""

import logging
from dataclasses import dataclass
from typing import Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from gmbs_portal.billing.stripe_webhook import (
    StripeEvent,
    first_price_id,
    map_subscription_status,
)
from gmbs_portal.common.config import PortalSettings
from gmbs_portal.tenants.plans import get_artisan_limit
from gmbs_portal.tenants.service import TenantService

logger = logging.getLogger(__name__)


@dataclass
class WelcomeEmail:
    to_email: str
    tenant_name: str
    api_key_id: str
    api_secret: str
    plan: str
    allowed_artisans: int

    def __repr__(self) -> str:
        return f"WelcomeEmail(to_email={self.to_email!r}, api_key_id={self.api_key_id!r})"


@dataclass
class BillingOutcome:
    event_type: str
    action: str
    tenant_id: str | None = None
    welcome: WelcomeEmail | None = None


class BillingService:
    """Creates tenants on checkout and tracks their subscription state."""

    def __init__(self, settings: PortalSettings, tenant_service: TenantService, audit_service=None):
        self.settings = settings
        self.tenants = tenant_service
        self.audit_service = audit_service

    # ── Price → plan ──

    def plan_for_price(self, price_id: str | None) -> dict[str, Any] | None:
        if not price_id:
            return None
        return self.settings.price_map.get(price_id)

    async def retrieve_price_id(self, subscription_id: str | None) -> str | None:
        """Look up the first price of a subscription through the Stripe API."""
        if not subscription_id or not self.settings.stripe_api_key:
            return None
        try:
            subscription = await run_in_threadpool(
                stripe.Subscription.retrieve,
                subscription_id,
                api_key=self.settings.stripe_api_key,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe subscription lookup failed: %s", exc.__class__.__name__)
            return None
        return first_price_id(subscription.to_dict())

    # ── Dispatch ──

    async def handle_event(self, session: AsyncSession, event: StripeEvent) -> BillingOutcome:
        handler = {
            "checkout.session.completed": self._checkout_completed,
            "customer.subscription.updated": self._subscription_updated,
            "customer.subscription.deleted": self._subscription_deleted,
            "invoice.payment_failed": self._payment_failed,
        }[event.type]
        return await handler(session, event)

    async def _checkout_completed(self, session: AsyncSession, event: StripeEvent) -> BillingOutcome:
        obj = event.object
        metadata = obj.get("metadata") or {}
        customer_details = obj.get("customer_details") or {}
        customer_id = obj.get("customer")
        subscription_id = obj.get("subscription")
        email = obj.get("customer_email") or customer_details.get("email") or metadata.get("email")
        name = metadata.get("tenant_name") or email or "Unknown Tenant"

        if customer_id:
            existing = await self.tenants.get_by_stripe_customer(session, customer_id)
            if existing is not None:
                logger.info(
                    "Checkout already provisioned", extra={"tenant_id": existing.id, "event_id": event.id},
                )
                return BillingOutcome(event.type, "duplicate", tenant_id=existing.id)

        price_id = metadata.get("price_id") or await self.retrieve_price_id(subscription_id)
        plan_config = self.plan_for_price(price_id) or {}
        plan = plan_config.get("plan", "basic")
        allowed = int(plan_config.get("artisans", get_artisan_limit(plan)))

        tenant, api_key, secret = await self.tenants.create_tenant(
            session,
            name=name,
            plan=plan,
            subscription_status="active",
            allowed_artisans=allowed,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            actor="stripe",
        )
        if self.audit_service:
            await self.audit_service.record(
                session, tenant.id, "tenant.created_via_stripe", "tenant", tenant.id,
                {"stripe_customer_id": customer_id,
                 "stripe_subscription_id": subscription_id,
                 "plan": plan,
                 "allowed_artisans": allowed},
                actor="stripe",
            )

        welcome = None
        if email:
            welcome = WelcomeEmail(
                to_email=email,
                tenant_name=name,
                api_key_id=api_key.key_id,
                api_secret=secret,
                plan=plan,
                allowed_artisans=allowed,
            )
        else:
            logger.warning(
                "No customer email on checkout; credentials need manual delivery",
                extra={"tenant_id": tenant.id, "key_id": api_key.key_id},
            )
        return BillingOutcome(event.type, "tenant_created", tenant_id=tenant.id, welcome=welcome)

    async def _subscription_updated(self, session: AsyncSession, event: StripeEvent) -> BillingOutcome:
        obj = event.object
        tenant = await self.tenants.get_by_stripe_customer(session, obj.get("customer") or "")
        if tenant is None:
            logger.warning("Subscription update for unknown customer", extra={"event_id": event.id})
            return BillingOutcome(event.type, "unknown_customer")

        updates: dict[str, Any] = {"subscription_status": map_subscription_status(obj)}
        plan_config = self.plan_for_price(first_price_id(obj))
        if plan_config:
            updates["subscription_plan"] = plan_config["plan"]
            updates["allowed_artisans"] = int(plan_config["artisans"])

        await self.tenants.update_tenant(session, tenant.id, actor="stripe", **updates)
        logger.info(
            "Subscription updated",
            extra={"tenant_id": tenant.id, "subscription_status": updates["subscription_status"]},
        )
        return BillingOutcome(event.type, "subscription_updated", tenant_id=tenant.id)

    async def _subscription_deleted(self, session: AsyncSession, event: StripeEvent) -> BillingOutcome:
        tenant = await self.tenants.get_by_stripe_customer(session, event.object.get("customer") or "")
        if tenant is None:
            logger.warning("Subscription deletion for unknown customer", extra={"event_id": event.id})
            return BillingOutcome(event.type, "unknown_customer")

        await self.tenants.update_tenant(
            session, tenant.id, actor="stripe", subscription_status="cancelled",
        )
        if self.audit_service:
            await self.audit_service.record(
                session, tenant.id, "subscription.deleted", "tenant", tenant.id,
                {"subscription_id": event.object.get("id")}, actor="stripe",
            )
        return BillingOutcome(event.type, "subscription_cancelled", tenant_id=tenant.id)

    async def _payment_failed(self, session: AsyncSession, event: StripeEvent) -> BillingOutcome:
        invoice = event.object
        tenant = await self.tenants.get_by_stripe_customer(session, invoice.get("customer") or "")
        if tenant is None:
            return BillingOutcome(event.type, "unknown_customer")

        logger.warning("Payment failed", extra={"tenant_id": tenant.id, "invoice_id": invoice.get("id")})
        if self.audit_service:
            await self.audit_service.record(
                session, tenant.id, "payment.failed", "tenant", tenant.id,
                {"invoice_id": invoice.get("id"),
                 "amount_due": invoice.get("amount_due"),
                 "attempt_count": invoice.get("attempt_count")},
                actor="stripe",
            )
        return BillingOutcome(event.type, "payment_failed_recorded", tenant_id=tenant.id)
