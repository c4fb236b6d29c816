"""Integration tests for the tenant-facing submitted report lookup."""

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32


async def _submit_report(client, token, comment=None):
    data = {"token": token}
    if comment:
        data["comment"] = comment
    await client.post("/portal/photos", data=data, files={"file": ("evier.jpg", JPEG, "image/jpeg")})
    report = (await client.post("/portal/report", json={"token": token})).json()["report"]
    resp = await client.post("/portal/report/submit", json={"token": token, "reportId": report["id"]})
    assert resp.status_code == 200
    return report


class TestReportRouter:
    async def test_no_submitted_report(self, client, make_tenant, issue_token):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)
        await client.post("/portal/photos", data={"token": token}, files={"file": ("a.jpg", JPEG, "image/jpeg")})
        await client.post("/portal/report", json={"token": token})

        resp = await client.get("/interventions/INT-1/report", params={"artisanId": "A1"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json() == {"report": None, "photos": []}

    async def test_submitted_report_with_photo_links(self, client, make_tenant, issue_token):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)
        report = await _submit_report(client, token, comment="Joint changé")

        resp = await client.get("/interventions/INT-1/report", params={"artisanId": "A1"}, headers=headers)
        data = resp.json()
        assert data["report"]["id"] == report["id"]
        assert data["report"]["status"] == "submitted"
        assert data["report"]["submittedAt"] is not None
        [photo] = data["photos"]
        assert photo["filename"] == "evier.jpg"
        assert photo["comment"] == "Joint changé"

        file_resp = await client.get(photo["url"])
        assert file_resp.content == JPEG

    async def test_artisan_id_required(self, client, make_tenant):
        _, headers = await make_tenant()
        resp = await client.get("/interventions/INT-1/report", headers=headers)
        assert resp.status_code == 400

    async def test_other_tenant_sees_nothing(self, client, make_tenant, issue_token):
        tenant_a, _ = await make_tenant(name="A")
        _, headers_b = await make_tenant(name="B")
        await _submit_report(client, await issue_token(tenant_a))

        resp = await client.get("/interventions/INT-1/report", params={"artisanId": "A1"}, headers=headers_b)
        assert resp.json() == {"report": None, "photos": []}

    async def test_requires_tenant_credentials(self, client):
        resp = await client.get("/interventions/INT-1/report", params={"artisanId": "A1"})
        assert resp.status_code == 401
