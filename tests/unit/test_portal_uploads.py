"""Tests for artisan photo and document uploads."""

import pytest
from sqlalchemy import select

from gmbs_portal.common.exceptions import Conflict, NotFound, ValidationFailure
from gmbs_portal.portal.models import ArtisanDocumentModel, InterventionPhotoModel
from gmbs_portal.submissions.models import SubmissionModel

JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 64
PDF = b"%PDF-1.4\n" + b"\x00" * 64


@pytest.fixture
async def ctx(container, make_tenant, issue_token):
    tenant, _ = await make_tenant()
    token = await issue_token(tenant)
    async with container.db.get_session() as session:
        return await container.tokens.authenticate(session, token)


async def _upload_photo(container, ctx, filename="chantier.jpg", data=JPEG, **kwargs):
    async with container.db.get_session() as session:
        return await container.photos.upload(
            session, ctx, "INT-1", filename, kwargs.pop("content_type", "image/jpeg"), data, **kwargs,
        )


async def _ledger(container, tenant_id, type=None):
    async with container.db.get_session() as session:
        query = select(SubmissionModel).where(SubmissionModel.tenant_id == tenant_id)
        if type:
            query = query.where(SubmissionModel.type == type)
        result = await session.execute(query)
        return list(result.scalars().all())


class TestPhotoUpload:
    async def test_upload_stores_blob_row_and_ledger_entry(self, container, ctx):
        photo = await _upload_photo(container, ctx, comment="Avant travaux")

        assert photo.storage_path.startswith(f"{ctx.tenant_id}/A1/interventions/INT-1/photo_")
        assert photo.storage_path.endswith(".jpg")
        assert photo.original_filename == "chantier.jpg"
        assert photo.file_size == len(JPEG)
        assert container.store.exists(photo.storage_path)

        [entry] = await _ledger(container, ctx.tenant_id)
        assert entry.type == "photo"
        assert entry.source_id == photo.id
        assert entry.crm_intervention_id == "INT-1"
        assert entry.storage_paths == [photo.storage_path]
        assert entry.data["comment"] == "Avant travaux"

    async def test_extension_defaults_to_jpg(self, container, ctx):
        photo = await _upload_photo(container, ctx, filename="IMG")
        assert photo.storage_path.endswith(".jpg")

    async def test_empty_file_rejected(self, container, ctx):
        with pytest.raises(ValidationFailure, match="File required"):
            await _upload_photo(container, ctx, data=b"")

    async def test_oversized_file_rejected(self, container, ctx):
        big = b"\x00" * (container.settings.max_upload_bytes + 1)
        with pytest.raises(ValidationFailure) as exc:
            await _upload_photo(container, ctx, data=big)
        assert exc.value.code == "FILE_TOO_LARGE"

    async def test_pdf_rejected_for_photos(self, container, ctx):
        with pytest.raises(ValidationFailure) as exc:
            await _upload_photo(container, ctx, filename="x.pdf", data=PDF, content_type="application/pdf")
        assert exc.value.code == "INVALID_FILE_TYPE"
        assert await _ledger(container, ctx.tenant_id) == []

    async def test_intervention_required(self, container, ctx):
        async with container.db.get_session() as session:
            with pytest.raises(ValidationFailure):
                await container.photos.upload(session, ctx, "", "a.jpg", "image/jpeg", JPEG)

    async def test_list_in_upload_order(self, container, ctx):
        first = await _upload_photo(container, ctx, filename="1.jpg")
        second = await _upload_photo(container, ctx, filename="2.jpg")
        async with container.db.get_session() as session:
            photos = await container.photos.list_photos(session, ctx, "INT-1")
        assert [p.id for p in photos] == [first.id, second.id]

    async def test_failed_insert_discards_blob(self, container, ctx, monkeypatch):
        async def boom(*args, **kwargs):
            raise RuntimeError("ledger down")

        monkeypatch.setattr(container.ledger, "append", boom)
        with pytest.raises(RuntimeError):
            await _upload_photo(container, ctx)
        assert not any(container.store.root.rglob("*.jpg"))
        async with container.db.get_session() as session:
            result = await session.execute(select(InterventionPhotoModel))
            assert result.scalars().all() == []


class TestPhotoEdits:
    async def test_update_comment(self, container, ctx):
        photo = await _upload_photo(container, ctx)
        async with container.db.get_session() as session:
            updated = await container.photos.update_comment(session, ctx, photo.id, "Après")
        assert updated.comment == "Après"

    async def test_other_artisan_cannot_touch_photo(self, container, ctx, issue_token):
        photo = await _upload_photo(container, ctx)
        async with container.db.get_session() as session:
            tenant = await container.tenants.get_by_id(session, ctx.tenant_id)
        other_token = await issue_token(tenant, artisan_id="A2")
        async with container.db.get_session() as session:
            other = await container.tokens.authenticate(session, other_token)
            with pytest.raises(NotFound):
                await container.photos.update_comment(session, other, photo.id, "hijack")

    async def test_delete_removes_row_blob_and_pending_entry(self, container, ctx):
        photo = await _upload_photo(container, ctx)
        async with container.db.get_session() as session:
            await container.photos.delete(session, ctx, photo.id)

        assert not container.store.exists(photo.storage_path)
        assert await _ledger(container, ctx.tenant_id, "photo") == []
        async with container.db.get_session() as session:
            assert await session.get(InterventionPhotoModel, photo.id) is None

    async def test_synced_photo_is_frozen(self, container, ctx):
        photo = await _upload_photo(container, ctx)
        async with container.db.get_session() as session:
            row = await session.get(InterventionPhotoModel, photo.id)
            row.synced_to_crm = True

        async with container.db.get_session() as session:
            with pytest.raises(ValidationFailure) as exc:
                await container.photos.delete(session, ctx, photo.id)
            assert exc.value.code == "PHOTO_SYNCED"
            with pytest.raises(ValidationFailure):
                await container.photos.update_comment(session, ctx, photo.id, "late")
        assert container.store.exists(photo.storage_path)

    async def test_signed_url(self, container, ctx):
        photo = await _upload_photo(container, ctx)
        url = container.photos.signed_url(photo)
        assert "/files/" in url


class TestDocumentUpload:
    async def _upload(self, container, ctx, kind="kbis", data=PDF, content_type="application/pdf"):
        async with container.db.get_session() as session:
            return await container.documents.upload(
                session, ctx, kind, f"{kind}.pdf", content_type, data,
            )

    async def test_upload_pdf(self, container, ctx):
        doc = await self._upload(container, ctx)
        assert doc.storage_path.startswith(f"{ctx.tenant_id}/A1/documents/kbis_")
        assert doc.storage_path.endswith(".pdf")
        [entry] = await _ledger(container, ctx.tenant_id, "document")
        assert entry.data["kind"] == "kbis"
        assert entry.data["document_id"] == doc.id

    async def test_unknown_kind(self, container, ctx):
        with pytest.raises(ValidationFailure) as exc:
            await self._upload(container, ctx, kind="passport")
        assert exc.value.code == "INVALID_DOCUMENT_KIND"

    async def test_rejects_non_document_type(self, container, ctx):
        with pytest.raises(ValidationFailure) as exc:
            await self._upload(container, ctx, data=b"PK\x03\x04", content_type="application/zip")
        assert exc.value.code == "INVALID_FILE_TYPE"

    async def test_replace_keeps_one_per_kind(self, container, ctx):
        first = await self._upload(container, ctx)
        second = await self._upload(container, ctx, data=PDF + b"v2")

        async with container.db.get_session() as session:
            docs = await container.documents.list_documents(session, ctx)
        assert [d.id for d in docs] == [second.id]
        assert not container.store.exists(first.storage_path)
        assert container.store.exists(second.storage_path)

        entries = await _ledger(container, ctx.tenant_id, "document")
        assert [e.source_id for e in entries] == [second.id]

    async def test_kinds_are_independent(self, container, ctx):
        await self._upload(container, ctx, kind="kbis")
        await self._upload(container, ctx, kind="iban", data=JPEG, content_type="image/jpeg")
        async with container.db.get_session() as session:
            result = await session.execute(select(ArtisanDocumentModel.kind))
            assert sorted(result.scalars().all()) == ["iban", "kbis"]

    async def test_concurrent_insert_maps_to_conflict(self, container, ctx, monkeypatch):
        await self._upload(container, ctx)

        async def no_existing(*args, **kwargs):
            return None

        monkeypatch.setattr(container.documents, "get_by_kind", no_existing)
        with pytest.raises(Conflict) as exc:
            await self._upload(container, ctx)
        assert exc.value.code == "DOCUMENT_CONFLICT"
