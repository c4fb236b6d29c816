"""Stripe webhook signature verification and event parsing."""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

HANDLED_EVENTS = frozenset({
    "checkout.session.completed",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.payment_failed",
})


def verify_stripe_signature(
    payload: bytes,
    signature_header: str,
    webhook_secret: str,
    tolerance: int = 300,
    now: float | None = None,
) -> bool:
    """Verify a Stripe webhook signature (v1 scheme).

    Stripe sends ``t=<timestamp>,v1=<signature>[,v1=...]``. Any v1 entry may
    match; the timestamp must be within ``tolerance`` seconds.
    """
    if not signature_header or not webhook_secret:
        return False

    timestamp = ""
    signatures = []
    for item in signature_header.split(","):
        key, _, value = item.partition("=")
        key = key.strip()
        if key == "t":
            timestamp = value.strip()
        elif key == "v1":
            signatures.append(value.strip())
    if not timestamp or not signatures:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False
    if tolerance and abs((now if now is not None else time.time()) - ts) > tolerance:
        logger.warning("Stripe signature timestamp outside tolerance")
        return False

    signed_payload = f"{timestamp}.".encode() + payload
    computed = hmac.new(
        webhook_secret.encode(),
        signed_payload,
        hashlib.sha256,
    ).hexdigest()

    return any(hmac.compare_digest(computed, sig) for sig in signatures)


@dataclass
class StripeEvent:
    id: str
    type: str
    object: dict[str, Any] = field(default_factory=dict)


def parse_stripe_event(event_data: dict[str, Any]) -> StripeEvent | None:
    """Extract the event type and its data object, or None for unhandled types."""
    event_type = event_data.get("type", "")
    if event_type not in HANDLED_EVENTS:
        logger.debug("Ignoring Stripe event type: %s", event_type)
        return None
    obj = (event_data.get("data") or {}).get("object") or {}
    return StripeEvent(id=event_data.get("id", ""), type=event_type, object=obj)


def first_price_id(subscription: dict[str, Any]) -> str | None:
    """Price id of the first subscription item, if present."""
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    price = items[0].get("price") or {}
    return price.get("id")


def map_subscription_status(subscription: dict[str, Any]) -> str:
    """Map a Stripe subscription onto the tenant status vocabulary."""
    status = subscription.get("status", "")
    if status == "canceled" or subscription.get("cancel_at_period_end"):
        return "cancelled"
    if status in ("past_due", "unpaid"):
        return "expired"
    return "active"
