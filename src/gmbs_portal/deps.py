"""Service container and FastAPI dependencies for GMBS Portal.

One ``ServiceContainer`` is built per application from explicit settings and
stored on ``app.state``; handlers reach it through ``get_container``.
"""

from dataclasses import dataclass

from fastapi import Request

from gmbs_portal.audit.service import AuditService
from gmbs_portal.billing.email_delivery import EmailSender
from gmbs_portal.billing.service import BillingService
from gmbs_portal.common.config import PortalSettings
from gmbs_portal.common.database import DatabaseManager
from gmbs_portal.crm.client import CRMClient
from gmbs_portal.portal.service import DocumentService, PhotoService
from gmbs_portal.reports.service import ReportWorkflow
from gmbs_portal.storage.store import LocalObjectStore, ObjectStore
from gmbs_portal.submissions.service import SubmissionLedger
from gmbs_portal.tenants.auth import TenantAuthenticator
from gmbs_portal.tenants.service import TenantService
from gmbs_portal.tokens.service import TokenService


@dataclass
class ServiceContainer:
    settings: PortalSettings
    db: DatabaseManager
    audit: AuditService
    tenants: TenantService
    tenant_auth: TenantAuthenticator
    tokens: TokenService
    ledger: SubmissionLedger
    store: ObjectStore
    photos: PhotoService
    documents: DocumentService
    reports: ReportWorkflow
    crm: CRMClient
    billing: BillingService
    email: EmailSender

    @classmethod
    def build(
        cls,
        settings: PortalSettings,
        db: DatabaseManager | None = None,
        store: ObjectStore | None = None,
        crm: CRMClient | None = None,
        email: EmailSender | None = None,
    ) -> "ServiceContainer":
        audit = AuditService()
        tenants = TenantService(settings, audit_service=audit)
        ledger = SubmissionLedger(settings, audit_service=audit)
        store = store or LocalObjectStore(settings, base_url=settings.api_prefix)
        photos = PhotoService(settings, store, ledger, audit_service=audit)
        return cls(
            settings=settings,
            db=db or DatabaseManager(settings),
            audit=audit,
            tenants=tenants,
            tenant_auth=TenantAuthenticator(settings, tenants),
            tokens=TokenService(settings, audit_service=audit),
            ledger=ledger,
            store=store,
            photos=photos,
            documents=DocumentService(settings, store, ledger, audit_service=audit),
            reports=ReportWorkflow(settings, ledger, photos, audit_service=audit),
            crm=crm or CRMClient(settings),
            billing=BillingService(settings, tenants, audit_service=audit),
            email=email or EmailSender(
                provider=settings.email_provider,
                api_key=settings.email_api_key,
                from_email=settings.email_from,
                from_name=settings.email_from_name,
                portal_url=settings.portal_url,
            ),
        )

    async def init(self) -> None:
        await self.db.init()
        await self.db.create_all()

    async def close(self) -> None:
        await self.crm.close()
        await self.db.close()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
