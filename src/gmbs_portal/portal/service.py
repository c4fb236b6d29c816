"""Artisan upload services: intervention photos and legal documents.

Every query filters on the (tenant, artisan) pair resolved from the portal
token; ids coming from the client are never trusted on their own.
"""

import logging
import re
import secrets
import time

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.exceptions import Conflict, NotFound, ValidationFailure
from gmbs_portal.portal.models import ArtisanDocumentModel, InterventionPhotoModel
from gmbs_portal.storage.store import ObjectStore
from gmbs_portal.submissions.service import SubmissionLedger
from gmbs_portal.tokens.service import PortalTokenContext

logger = logging.getLogger(__name__)

IMAGE_MIME_TYPES = frozenset({
    "image/jpeg", "image/png", "image/webp", "image/heic", "image/heif",
})
DOCUMENT_MIME_TYPES = IMAGE_MIME_TYPES | {"application/pdf"}
DOCUMENT_KINDS = ("kbis", "assurance", "cni_recto_verso", "iban", "decharge_partenariat")

_EXT_RE = re.compile(r"^[a-z0-9]{1,10}$")


def _extension(filename: str, default: str) -> str:
    if "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower()
        if _EXT_RE.match(ext):
            return ext
    return default


def _check_upload(
    data: bytes, content_type: str | None, allowed: frozenset[str], max_bytes: int, label: str,
) -> None:
    if not data:
        raise ValidationFailure("File required")
    if len(data) > max_bytes:
        raise ValidationFailure(
            f"File too large. Max size: {max_bytes // (1024 * 1024)}MB",
            code="FILE_TOO_LARGE",
        )
    if content_type not in allowed:
        raise ValidationFailure(
            f"Invalid file type. Allowed: {label}", code="INVALID_FILE_TYPE",
        )


async def _discard_blobs(store: ObjectStore, paths: list[str]) -> None:
    try:
        await store.delete(paths)
    except OSError:
        logger.warning("Blob cleanup failed", extra={"paths": paths}, exc_info=True)


class PhotoService:
    """Intervention photos uploaded by an artisan."""

    def __init__(
        self,
        settings: PortalSettings,
        store: ObjectStore,
        ledger: SubmissionLedger,
        audit_service=None,
    ):
        self.settings = settings
        self.store = store
        self.ledger = ledger
        self.audit_service = audit_service

    async def list_photos(
        self, session: AsyncSession, ctx: PortalTokenContext, intervention_id: str,
    ) -> list[InterventionPhotoModel]:
        if not intervention_id:
            raise ValidationFailure("interventionId required")
        result = await session.execute(
            select(InterventionPhotoModel)
            .where(
                InterventionPhotoModel.tenant_id == ctx.tenant_id,
                InterventionPhotoModel.crm_artisan_id == ctx.artisan_id,
                InterventionPhotoModel.crm_intervention_id == intervention_id,
            )
            .order_by(InterventionPhotoModel.created_at.asc(), InterventionPhotoModel.id.asc())
        )
        return list(result.scalars().all())

    async def get_by_ids(
        self, session: AsyncSession, tenant_id: str, photo_ids: list[str],
    ) -> list[InterventionPhotoModel]:
        if not photo_ids:
            return []
        result = await session.execute(
            select(InterventionPhotoModel).where(
                InterventionPhotoModel.tenant_id == tenant_id,
                InterventionPhotoModel.id.in_(photo_ids),
            )
        )
        by_id = {p.id: p for p in result.scalars().all()}
        return [by_id[i] for i in photo_ids if i in by_id]

    async def get_owned(
        self, session: AsyncSession, ctx: PortalTokenContext, photo_id: str,
    ) -> InterventionPhotoModel:
        result = await session.execute(
            select(InterventionPhotoModel).where(
                InterventionPhotoModel.id == photo_id,
                InterventionPhotoModel.tenant_id == ctx.tenant_id,
                InterventionPhotoModel.crm_artisan_id == ctx.artisan_id,
            )
        )
        photo = result.scalar_one_or_none()
        if photo is None:
            raise NotFound("Photo not found")
        return photo

    def signed_url(self, photo: InterventionPhotoModel) -> str | None:
        return self.store.signed_url(photo.storage_path, self.settings.signed_url_ttl)

    async def upload(
        self,
        session: AsyncSession,
        ctx: PortalTokenContext,
        intervention_id: str,
        original_filename: str,
        content_type: str | None,
        data: bytes,
        comment: str | None = None,
    ) -> InterventionPhotoModel:
        if not intervention_id:
            raise ValidationFailure("interventionId required")
        _check_upload(
            data, content_type, IMAGE_MIME_TYPES,
            self.settings.max_upload_bytes, "JPEG, PNG, WebP, HEIC",
        )

        original_filename = original_filename or "photo"
        filename = (
            f"photo_{int(time.time() * 1000)}_{secrets.token_hex(8)}"
            f".{_extension(original_filename, 'jpg')}"
        )
        storage_path = (
            f"{ctx.tenant_id}/{ctx.artisan_id}/interventions/{intervention_id}/{filename}"
        )
        await self.store.put(storage_path, data, content_type)

        photo = InterventionPhotoModel(
            tenant_id=ctx.tenant_id,
            portal_token_id=ctx.token_id,
            crm_artisan_id=ctx.artisan_id,
            crm_intervention_id=intervention_id,
            filename=filename,
            original_filename=original_filename,
            mime_type=content_type,
            file_size=len(data),
            storage_path=storage_path,
            comment=comment or None,
        )
        session.add(photo)
        try:
            await session.flush()
            await self.ledger.append(
                session,
                ctx.tenant_id,
                ctx.artisan_id,
                "photo",
                {
                    "photo_id": photo.id,
                    "filename": original_filename,
                    "mime_type": content_type,
                    "file_size": len(data),
                    "comment": comment or None,
                },
                storage_paths=[storage_path],
                portal_token_id=ctx.token_id,
                crm_intervention_id=intervention_id,
                source_id=photo.id,
            )
        except Exception:
            await _discard_blobs(self.store, [storage_path])
            raise

        logger.info(
            "Photo uploaded",
            extra={"tenant_id": ctx.tenant_id, "photo_id": photo.id, "file_size": len(data)},
        )
        return photo

    async def update_comment(
        self, session: AsyncSession, ctx: PortalTokenContext, photo_id: str, comment: str | None,
    ) -> InterventionPhotoModel:
        photo = await self.get_owned(session, ctx, photo_id)
        if photo.synced_to_crm:
            raise ValidationFailure(
                "Cannot modify photo that has been synced to CRM", code="PHOTO_SYNCED",
            )
        photo.comment = comment or None
        await session.flush()
        return photo

    async def delete(
        self, session: AsyncSession, ctx: PortalTokenContext, photo_id: str,
    ) -> None:
        photo = await self.get_owned(session, ctx, photo_id)
        if photo.synced_to_crm:
            raise ValidationFailure(
                "Cannot delete photo that has been synced to CRM", code="PHOTO_SYNCED",
            )
        storage_path = photo.storage_path
        await session.delete(photo)
        await session.flush()
        dropped = await self.ledger.delete_unsynced_for_source(
            session, ctx.tenant_id, "photo", photo_id,
        )
        await _discard_blobs(self.store, [storage_path])
        logger.info(
            "Photo deleted",
            extra={"tenant_id": ctx.tenant_id, "photo_id": photo_id, "ledger_dropped": dropped},
        )


class DocumentService:
    """Legal documents (one per kind) uploaded by an artisan."""

    def __init__(
        self,
        settings: PortalSettings,
        store: ObjectStore,
        ledger: SubmissionLedger,
        audit_service=None,
    ):
        self.settings = settings
        self.store = store
        self.ledger = ledger
        self.audit_service = audit_service

    async def list_documents(
        self, session: AsyncSession, ctx: PortalTokenContext,
    ) -> list[ArtisanDocumentModel]:
        result = await session.execute(
            select(ArtisanDocumentModel)
            .where(
                ArtisanDocumentModel.tenant_id == ctx.tenant_id,
                ArtisanDocumentModel.crm_artisan_id == ctx.artisan_id,
            )
            .order_by(ArtisanDocumentModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_kind(
        self, session: AsyncSession, ctx: PortalTokenContext, kind: str,
    ) -> ArtisanDocumentModel | None:
        result = await session.execute(
            select(ArtisanDocumentModel).where(
                ArtisanDocumentModel.tenant_id == ctx.tenant_id,
                ArtisanDocumentModel.crm_artisan_id == ctx.artisan_id,
                ArtisanDocumentModel.kind == kind,
            )
        )
        return result.scalar_one_or_none()

    async def upload(
        self,
        session: AsyncSession,
        ctx: PortalTokenContext,
        kind: str | None,
        original_filename: str,
        content_type: str | None,
        data: bytes,
    ) -> ArtisanDocumentModel:
        if kind not in DOCUMENT_KINDS:
            raise ValidationFailure(
                f"Invalid document kind. Allowed: {', '.join(DOCUMENT_KINDS)}",
                code="INVALID_DOCUMENT_KIND",
            )
        _check_upload(
            data, content_type, DOCUMENT_MIME_TYPES,
            self.settings.max_upload_bytes, "JPEG, PNG, WebP, HEIC, PDF",
        )

        original_filename = original_filename or kind
        filename = f"{kind}_{secrets.token_hex(8)}.{_extension(original_filename, 'bin')}"
        storage_path = f"{ctx.tenant_id}/{ctx.artisan_id}/documents/{filename}"
        await self.store.put(storage_path, data, content_type)

        replaced_path = None
        try:
            existing = await self.get_by_kind(session, ctx, kind)
            if existing is not None:
                replaced_path = existing.storage_path
                await self.ledger.delete_unsynced_for_source(
                    session, ctx.tenant_id, "document", existing.id,
                )
                await session.delete(existing)
                await session.flush()

            document = ArtisanDocumentModel(
                tenant_id=ctx.tenant_id,
                portal_token_id=ctx.token_id,
                crm_artisan_id=ctx.artisan_id,
                kind=kind,
                filename=filename,
                original_filename=original_filename,
                mime_type=content_type,
                file_size=len(data),
                storage_path=storage_path,
            )
            session.add(document)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise Conflict(
                    "A document of this kind was uploaded concurrently; retry",
                    code="DOCUMENT_CONFLICT",
                ) from exc

            await self.ledger.append(
                session,
                ctx.tenant_id,
                ctx.artisan_id,
                "document",
                {
                    "document_id": document.id,
                    "kind": kind,
                    "filename": original_filename,
                    "mime_type": content_type,
                    "file_size": len(data),
                    "storage_path": storage_path,
                },
                storage_paths=[storage_path],
                portal_token_id=ctx.token_id,
                source_id=document.id,
            )
        except Exception:
            await _discard_blobs(self.store, [storage_path])
            raise

        if replaced_path:
            await _discard_blobs(self.store, [replaced_path])

        logger.info(
            "Document uploaded",
            extra={"tenant_id": ctx.tenant_id, "kind": kind, "replaced": bool(replaced_path)},
        )
        return document
