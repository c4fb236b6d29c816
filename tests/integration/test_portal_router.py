"""Integration tests for the artisan portal: photos, documents, reports, file links."""

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 32
PDF = b"%PDF-1.4\n" + b"\x00" * 32


async def _upload_photo(client, token, name="photo.jpg", **form):
    data = {"token": token, **form}
    return await client.post(
        "/portal/photos", data=data, files={"file": (name, JPEG, "image/jpeg")},
    )


class TestPortalAuth:
    async def test_token_required(self, client):
        resp = await client.get("/portal/photos", params={"interventionId": "INT-1"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "TOKEN_REQUIRED"

    async def test_unknown_token(self, client):
        resp = await client.get("/portal/photos", params={"token": "f" * 64})
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    async def test_upload_checks_token_before_file(self, client):
        resp = await client.post("/portal/photos", data={"interventionId": "INT-1"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "TOKEN_REQUIRED"

        resp = await client.post("/portal/documents", data={"token": "f" * 64, "kind": "kbis"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    async def test_upload_without_file(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.post("/portal/photos", data={"token": token})
        assert resp.status_code == 400
        assert resp.json() == {"error": "file required", "code": "VALIDATION_FAILED"}

    async def test_header_token(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.get("/portal/photos", headers={"X-Portal-Token": token})
        assert resp.status_code == 200
        assert resp.json() == {"photos": []}

    async def test_unlinked_token_needs_intervention(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant, intervention_id=None)
        resp = await client.get("/portal/photos", params={"token": token})
        assert resp.status_code == 400
        assert resp.json()["code"] == "TOKEN_NOT_LINKED"

        resp = await client.get("/portal/photos", params={"token": token, "interventionId": "INT-5"})
        assert resp.status_code == 200


class TestPhotos:
    async def test_upload_list_comment_delete(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)

        resp = await _upload_photo(client, token, comment="Avant")
        assert resp.status_code == 200
        photo = resp.json()["photo"]
        assert resp.json()["success"] is True
        assert photo["filename"] == "photo.jpg"
        assert photo["comment"] == "Avant"
        assert "/files/" in photo["url"]
        assert "createdAt" in photo

        resp = await client.patch(
            f"/portal/photos/{photo['id']}", json={"token": token, "comment": "Après"},
        )
        assert resp.json() == {"success": True, "photo": {"id": photo["id"], "comment": "Après"}}

        resp = await client.get("/portal/photos", params={"token": token})
        assert [p["comment"] for p in resp.json()["photos"]] == ["Après"]

        resp = await client.delete(f"/portal/photos/{photo['id']}", params={"token": token})
        assert resp.json() == {"success": True}
        resp = await client.get("/portal/photos", params={"token": token})
        assert resp.json()["photos"] == []

    async def test_rejects_wrong_type(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.post(
            "/portal/photos",
            data={"token": token},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_FILE_TYPE"

    async def test_rejects_oversized(self, client, container, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        big = b"\x00" * (container.settings.max_upload_bytes + 10)
        resp = await client.post(
            "/portal/photos",
            data={"token": token},
            files={"file": ("big.jpg", big, "image/jpeg")},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "FILE_TOO_LARGE"

    async def test_other_artisan_gets_404(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        owner = await issue_token(tenant, artisan_id="A1")
        intruder = await issue_token(tenant, artisan_id="A2")
        photo = (await _upload_photo(client, owner)).json()["photo"]

        resp = await client.delete(f"/portal/photos/{photo['id']}", params={"token": intruder})
        assert resp.status_code == 404

    async def test_signed_link_serves_file(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        photo = (await _upload_photo(client, token)).json()["photo"]

        resp = await client.get(photo["url"])
        assert resp.status_code == 200
        assert resp.content == JPEG

    async def test_bad_link_is_404(self, client):
        resp = await client.get("/files/not-a-signed-link")
        assert resp.status_code == 404


class TestDocuments:
    async def test_upload_and_replace(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)

        for content in (PDF, PDF + b"v2"):
            resp = await client.post(
                "/portal/documents",
                data={"token": token, "kind": "assurance"},
                files={"file": ("assurance.pdf", content, "application/pdf")},
            )
            assert resp.status_code == 200
            assert resp.json()["document"]["kind"] == "assurance"

        resp = await client.get("/portal/documents", params={"token": token})
        [doc] = resp.json()["documents"]
        assert doc["kind"] == "assurance"
        assert doc["uploaded"] is True
        assert doc["filename"] == "assurance.pdf"
        assert "uploadedAt" in doc

    async def test_invalid_kind(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.post(
            "/portal/documents",
            data={"token": token, "kind": "permis"},
            files={"file": ("permis.pdf", PDF, "application/pdf")},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_DOCUMENT_KIND"


class TestReportFlow:
    async def test_artisan_session_end_to_end(
        self, client, make_tenant, issue_token, crm_recorder,
    ):
        tenant, headers = await make_tenant()
        token = await issue_token(tenant)

        resp = await client.post("/portal/report", json={"token": token})
        assert resp.status_code == 400
        assert resp.json()["code"] == "PRECONDITION_FAILED"

        photos = []
        for name in ("avant.jpg", "apres.jpg"):
            photos.append((await _upload_photo(client, token, name)).json()["photo"])

        resp = await client.post("/portal/report", json={"token": token})
        assert resp.status_code == 200
        report = resp.json()["report"]
        assert report["status"] == "draft"
        assert report["photoIds"] == [p["id"] for p in photos]
        assert "1. avant.jpg" in report["content"]
        assert "2. apres.jpg" in report["content"]

        resp = await client.patch(
            "/portal/report",
            json={"token": token, "reportId": report["id"], "content": "Remplacement du siphon."},
        )
        assert resp.json()["report"]["content"] == "Remplacement du siphon."

        resp = await client.post(
            "/portal/report/submit", json={"token": token, "reportId": report["id"]},
        )
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Rapport transmis avec succès"}

        resp = await client.get("/portal/report", params={"token": token})
        assert resp.json()["report"]["status"] == "submitted"
        assert resp.json()["report"]["submittedAt"] is not None

        resp = await client.post(
            "/portal/report/submit", json={"token": token, "reportId": report["id"]},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "ALREADY_SUBMITTED"

        # Photos attached to a submitted report are frozen.
        resp = await client.delete(f"/portal/photos/{photos[0]['id']}", params={"token": token})
        assert resp.status_code == 400
        assert resp.json()["code"] == "PHOTO_SYNCED"

        # The CRM was told after the commit.
        notified = [r for r in crm_recorder.requests if r.url.path.endswith("/report-submitted")]
        assert len(notified) == 1

        # And the ledger holds the photos plus the report.
        resp = await client.get("/submissions", headers=headers)
        types = [s["type"] for s in resp.json()["submissions"]]
        assert types == ["photo", "photo", "report"]

    async def test_submit_succeeds_when_crm_is_down(
        self, client, make_tenant, issue_token, crm_recorder,
    ):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        await _upload_photo(client, token)
        report = (await client.post("/portal/report", json={"token": token})).json()["report"]

        crm_recorder.status_code = 500
        resp = await client.post(
            "/portal/report/submit", json={"token": token, "reportId": report["id"]},
        )
        assert resp.status_code == 200

        resp = await client.get("/portal/report", params={"token": token})
        assert resp.json()["report"]["status"] == "submitted"

    async def test_no_report_yet(self, client, make_tenant, issue_token):
        tenant, _ = await make_tenant()
        token = await issue_token(tenant)
        resp = await client.get("/portal/report", params={"token": token})
        assert resp.json() == {"report": None}
