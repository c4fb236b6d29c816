"""Welcome email with API credentials: SendGrid / Resend integration."""

import logging

import httpx

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends tenant welcome emails.

    Supports SendGrid and Resend. Without a provider the send is logged
    (key id only, never the secret) and reported as not delivered.
    """

    def __init__(
        self,
        provider: str = "",
        api_key: str = "",
        from_email: str = "portal@gmbs.fr",
        from_name: str = "Portal GMBS",
        portal_url: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider.lower()  # "sendgrid" or "resend"
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.portal_url = portal_url.rstrip("/")
        self._transport = transport

    async def send_welcome(
        self,
        to_email: str,
        tenant_name: str,
        api_key_id: str,
        api_secret: str,
        plan: str,
        allowed_artisans: int,
    ) -> bool:
        subject = "Bienvenue sur Portal GMBS - Vos identifiants API"
        body = self._build_body(tenant_name, api_key_id, api_secret, plan, allowed_artisans)

        if self.provider == "sendgrid" and self.api_key:
            return await self._send_sendgrid(to_email, subject, body)
        elif self.provider == "resend" and self.api_key:
            return await self._send_resend(to_email, subject, body)
        else:
            logger.info(
                "No email provider configured; welcome email for %s not sent (key id %s)",
                to_email,
                api_key_id,
            )
            return False

    def _build_body(
        self,
        tenant_name: str,
        api_key_id: str,
        api_secret: str,
        plan: str,
        allowed_artisans: int,
    ) -> str:
        return (
            f"Bonjour {tenant_name},\n\n"
            f"Votre abonnement au plan {plan.upper()} est maintenant actif.\n"
            f"Vous pouvez gérer jusqu'à {allowed_artisans} artisans avec votre portail.\n\n"
            f"Vos identifiants API :\n\n"
            f"  API Key ID (public):      {api_key_id}\n"
            f"  API Secret (confidentiel): {api_secret}\n\n"
            f"Conservez ces identifiants en lieu sûr. Le secret ne sera plus "
            f"jamais affiché après cet email.\n\n"
            f"Portail : {self.portal_url or 'https://portal.gmbs.fr'}\n\n"
            f"L'équipe Portal GMBS"
        )

    async def _send_sendgrid(self, to: str, subject: str, body: str) -> bool:
        """Send via SendGrid v3 API."""
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    "https://api.sendgrid.com/v3/mail/send",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "personalizations": [{"to": [{"email": to}]}],
                        "from": {"email": self.from_email, "name": self.from_name},
                        "subject": subject,
                        "content": [{"type": "text/plain", "value": body}],
                    },
                    timeout=30,
                )
                if resp.status_code in (200, 202):
                    logger.info("SendGrid email sent to %s", to)
                    return True
                logger.warning("SendGrid error: %s", resp.status_code)
                return False
        except httpx.HTTPError:
            logger.exception("SendGrid send failed")
            return False

    async def _send_resend(self, to: str, subject: str, body: str) -> bool:
        """Send via Resend API."""
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    "https://api.resend.com/emails",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "from": f"{self.from_name} <{self.from_email}>",
                        "to": [to],
                        "subject": subject,
                        "text": body,
                    },
                    timeout=30,
                )
                if resp.status_code in (200, 201):
                    logger.info("Resend email sent to %s", to)
                    return True
                logger.warning("Resend error: %s", resp.status_code)
                return False
        except httpx.HTTPError:
            logger.exception("Resend send failed")
            return False
