"""HTTP client for the CRM's portal-external API."""

import logging
from typing import Any

import httpx

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import UpstreamFailure

logger = logging.getLogger(__name__)


class CRMClient:
    """Calls ``{crm_base_url}/api/portal-external/*`` with the portal's key pair.

    Responses are opaque JSON passed back to the caller. Transport errors and
    non-2xx answers raise ``UpstreamFailure``.
    """

    def __init__(
        self,
        settings: PortalSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = settings.crm_api_url
        self.key_id = settings.crm_key_id
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=settings.crm_timeout,
            transport=transport,
            headers={
                "X-GMBS-Key-Id": settings.crm_key_id,
                "X-GMBS-Secret": settings.crm_secret,
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        logger.debug("CRM request %s %s", method, endpoint)
        try:
            resp = await self._client.request(method, endpoint, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.warning("CRM unreachable: %s", exc.__class__.__name__)
            raise UpstreamFailure(f"CRM request failed: {exc.__class__.__name__}") from exc

        if resp.is_error:
            try:
                message = resp.json().get("error")
            except ValueError:
                message = None
            logger.warning(
                "CRM error", extra={"status": resp.status_code, "endpoint": endpoint},
            )
            raise UpstreamFailure(message or f"CRM Error: {resp.status_code}")

        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamFailure("CRM returned invalid JSON") from exc

    async def get_artisan_interventions(self, artisan_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/artisan/{artisan_id}/interventions")

    async def get_intervention_detail(self, intervention_id: str, artisan_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/intervention/{intervention_id}", params={"artisanId": artisan_id},
        )

    async def get_intervention_documents(
        self, intervention_id: str, artisan_id: str,
    ) -> dict[str, Any]:
        return await self._request(
            "GET", f"/intervention/{intervention_id}/documents", params={"artisanId": artisan_id},
        )

    async def get_artisan_documents(self, artisan_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/artisan/{artisan_id}/documents")

    async def upload_artisan_document(
        self,
        artisan_id: str,
        kind: str,
        filename: str,
        mime_type: str,
        base64_data: str,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/artisan/{artisan_id}/documents",
            json={
                "kind": kind,
                "filename": filename,
                "mimeType": mime_type,
                "base64Data": base64_data,
            },
        )

    async def get_intervention_report(self, intervention_id: str, artisan_id: str) -> dict[str, Any]:
        return await self._request(
            "GET", f"/intervention/{intervention_id}/report", params={"artisanId": artisan_id},
        )

    async def submit_intervention_report(
        self,
        intervention_id: str,
        artisan_id: str,
        content: str,
        photos: list[dict[str, Any]] | None = None,
        status: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"artisanId": artisan_id, "content": content}
        if photos is not None:
            payload["photos"] = photos
        if status:
            payload["status"] = status
        return await self._request(
            "POST", f"/intervention/{intervention_id}/report", json=payload,
        )

    async def notify_report_submitted(
        self,
        intervention_id: str,
        artisan_id: str,
        report_id: str,
        content: str,
        photo_count: int,
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/intervention/{intervention_id}/report-submitted",
            json={
                "artisanId": artisan_id,
                "reportId": report_id,
                "reportContent": content,
                "photoCount": photo_count,
            },
        )
