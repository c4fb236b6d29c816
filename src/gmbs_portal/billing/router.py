"""Stripe billing webhook endpoint."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gmbs_portal.billing.stripe_webhook import parse_stripe_event, verify_stripe_signature
from gmbs_portal.common.tasks import run_detached
from gmbs_portal.deps import ServiceContainer, get_container

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["billing"])


class WebhookResult(BaseModel):
    received: bool
    action: Optional[str] = None
    error: Optional[str] = None


@router.post("/stripe", response_model=WebhookResult)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: str = Header("", alias="Stripe-Signature"),
    container: ServiceContainer = Depends(get_container),
):
    """Apply a Stripe subscription event.

    Unverifiable deliveries are acknowledged with ``received: false`` and
    never processed. A verified event that fails while being applied is
    rolled back and answered with 500 so Stripe redelivers it.
    """
    settings = container.settings
    body = await request.body()

    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook secret not configured; event ignored")
        return WebhookResult(received=False, error="Webhook not configured")

    if not verify_stripe_signature(
        body, stripe_signature, settings.stripe_webhook_secret,
        tolerance=settings.stripe_webhook_tolerance,
    ):
        logger.warning("Invalid Stripe webhook signature")
        return WebhookResult(received=False, error="Invalid signature")

    try:
        event_data = json.loads(body)
    except json.JSONDecodeError:
        return WebhookResult(received=False, error="Invalid JSON")

    event = parse_stripe_event(event_data)
    if event is None:
        return WebhookResult(received=True, action="ignored")

    try:
        async with container.db.get_session() as session:
            outcome = await container.billing.handle_event(session, event)
    except Exception:
        logger.exception("Error processing Stripe event", extra={"event_type": event.type, "event_id": event.id})
        return JSONResponse(
            status_code=500,
            content={"received": True, "action": None, "error": "Processing failed"},
        )

    if outcome.welcome is not None:
        welcome = outcome.welcome
        background_tasks.add_task(
            run_detached,
            container.email.send_welcome,
            welcome.to_email,
            welcome.tenant_name,
            welcome.api_key_id,
            welcome.api_secret,
            welcome.plan,
            welcome.allowed_artisans,
            label="email.welcome",
        )
    logger.info(
        "Stripe event processed",
        extra={"event_type": event.type, "action": outcome.action, "tenant_id": outcome.tenant_id},
    )
    return WebhookResult(received=True, action=outcome.action)
