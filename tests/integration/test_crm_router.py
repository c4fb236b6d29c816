"""Integration tests for the artisan-authenticated CRM pass-through."""

import json


class TestCRMRouter:
    async def test_requires_token(self, client, crm_recorder):
        resp = await client.get("/portal/crm/interventions")
        assert resp.status_code == 400
        assert crm_recorder.requests == []

    async def test_interventions_use_token_artisan(self, client, make_tenant, issue_token, crm_recorder):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant, artisan_id="ART-42")
        crm_recorder.payload = {"interventions": [{"id": "INT-1", "status": "planned"}]}

        resp = await client.get("/portal/crm/interventions", params={"token": token})
        assert resp.status_code == 200
        assert resp.json() == {"interventions": [{"id": "INT-1", "status": "planned"}]}
        assert crm_recorder.requests[0].url.path == "/api/portal-external/artisan/ART-42/interventions"

    async def test_detail_documents_and_report(self, client, make_tenant, issue_token, crm_recorder):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        for path in (
            "/portal/crm/interventions/INT-9",
            "/portal/crm/interventions/INT-9/documents",
            "/portal/crm/interventions/INT-9/report",
            "/portal/crm/documents",
        ):
            resp = await client.get(path, headers={"X-Portal-Token": token})
            assert resp.status_code == 200

        seen = [(r.url.path, r.url.params.get("artisanId")) for r in crm_recorder.requests]
        assert seen == [
            ("/api/portal-external/intervention/INT-9", "A1"),
            ("/api/portal-external/intervention/INT-9/documents", "A1"),
            ("/api/portal-external/intervention/INT-9/report", "A1"),
            ("/api/portal-external/artisan/A1/documents", None),
        ]

    async def test_document_upload(self, client, make_tenant, issue_token, crm_recorder):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.post("/portal/crm/documents", json={
            "token": token,
            "kind": "iban",
            "filename": "rib.pdf",
            "mimeType": "application/pdf",
            "base64Data": "JVBERi0xLjQ=",
        })
        assert resp.status_code == 200
        body = json.loads(crm_recorder.requests[0].content)
        assert body == {
            "kind": "iban",
            "filename": "rib.pdf",
            "mimeType": "application/pdf",
            "base64Data": "JVBERi0xLjQ=",
        }

    async def test_report_submit_forwards_photos(self, client, make_tenant, issue_token, crm_recorder):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.post("/portal/crm/interventions/INT-1/report", json={
            "token": token,
            "content": "Travaux terminés",
            "photos": [{"filename": "a.jpg", "mimeType": "image/jpeg", "base64Data": "/9j/"}],
        })
        assert resp.status_code == 200
        body = json.loads(crm_recorder.requests[0].content)
        assert body == {
            "artisanId": "A1",
            "content": "Travaux terminés",
            "photos": [{"filename": "a.jpg", "mimeType": "image/jpeg", "base64Data": "/9j/"}],
            "status": "submitted",
        }

    async def test_crm_error_surfaces_as_502(self, client, make_tenant, issue_token, crm_recorder):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        crm_recorder.status_code = 500
        crm_recorder.payload = {"error": "Database offline"}

        resp = await client.get("/portal/crm/interventions", params={"token": token})
        assert resp.status_code == 502
        assert resp.json() == {"error": "Database offline", "code": "UPSTREAM_FAILURE"}
