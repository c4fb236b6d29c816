"""Integration tests for the CRM pull/acknowledge loop."""

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32


async def _upload(client, token, name="photo.jpg"):
    resp = await client.post(
        "/portal/photos",
        data={"token": token, "interventionId": "INT-1"},
        files={"file": (name, JPEG, "image/jpeg")},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["photo"]


class TestSubmissionRouter:
    async def test_pull_then_ack(self, client, make_tenant, issue_token):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)
        await _upload(client, token, "1.jpg")
        await _upload(client, token, "2.jpg")

        resp = await client.get("/submissions", headers=headers)
        assert resp.status_code == 200
        page = resp.json()
        assert page["count"] == 2
        assert page["has_more"] is False
        assert [s["data"]["filename"] for s in page["submissions"]] == ["1.jpg", "2.jpg"]
        assert all(s["type"] == "photo" and s["synced_to_crm"] is False for s in page["submissions"])

        ids = [s["id"] for s in page["submissions"]]
        resp = await client.post("/submissions/mark-synced", json={"ids": ids}, headers=headers)
        assert resp.json() == {"success": True, "marked_count": 2}

        resp = await client.get("/submissions", headers=headers)
        assert resp.json()["count"] == 0

        resp = await client.post("/submissions/mark-synced", json={"ids": ids}, headers=headers)
        assert resp.json() == {"success": True, "marked_count": 0}

    async def test_paging(self, client, make_tenant, issue_token):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)
        for i in range(5):
            await _upload(client, token, f"{i}.jpg")

        resp = await client.get("/submissions", params={"limit": 2}, headers=headers)
        page = resp.json()
        assert page["count"] == 2
        assert page["has_more"] is True
        assert [s["data"]["filename"] for s in page["submissions"]] == ["0.jpg", "1.jpg"]

        ids = [s["id"] for s in page["submissions"]]
        resp = await client.post("/submissions/mark-synced", json={"ids": ids}, headers=headers)
        assert resp.json()["marked_count"] == 2

        resp = await client.get("/submissions", params={"unsynced": "true"}, headers=headers)
        page = resp.json()
        assert page["count"] == 3
        assert page["has_more"] is False
        assert [s["data"]["filename"] for s in page["submissions"]] == ["2.jpg", "3.jpg", "4.jpg"]

    async def test_include_synced(self, client, make_tenant, issue_token):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)
        await _upload(client, token)
        ids = [s["id"] for s in (await client.get("/submissions", headers=headers)).json()["submissions"]]
        await client.post("/submissions/mark-synced", json={"ids": ids}, headers=headers)

        resp = await client.get("/submissions", params={"unsynced": "false"}, headers=headers)
        assert resp.json()["count"] == 1
        assert resp.json()["submissions"][0]["synced_to_crm"] is True

    async def test_cross_tenant_ack_rejected(self, client, make_tenant, issue_token):
        tenant_a, headers_a = await make_tenant(name="A")
        _, headers_b = await make_tenant(name="B")
        await _upload(client, await issue_token(tenant_a))
        foreign = [s["id"] for s in (await client.get("/submissions", headers=headers_a)).json()["submissions"]]

        resp = await client.get("/submissions", headers=headers_b)
        assert resp.json()["count"] == 0

        resp = await client.post("/submissions/mark-synced", json={"ids": foreign}, headers=headers_b)
        assert resp.status_code == 403
        assert resp.json()["code"] == "CROSS_TENANT_REFERENCE"
        assert resp.json()["invalid_ids"] == foreign

        resp = await client.get("/submissions", headers=headers_a)
        assert resp.json()["count"] == 1

    async def test_empty_ack(self, client, make_tenant):
        _, headers = await make_tenant()
        resp = await client.post("/submissions/mark-synced", json={"ids": []}, headers=headers)
        assert resp.status_code == 400

    async def test_requires_read_scope(self, client, make_tenant):
        _, headers = await make_tenant(scopes=["tokens:write"])
        resp = await client.get("/submissions", headers=headers)
        assert resp.status_code == 403
        assert resp.json()["code"] == "INSUFFICIENT_SCOPE"
