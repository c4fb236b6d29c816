"""FastAPI application factory for GMBS Portal."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gmbs_portal.common.config import PortalSettings, get_settings
from gmbs_portal.common.exceptions import PortalError
from gmbs_portal.common.logging import setup_logging
from gmbs_portal.common.schemas import HealthResponse
from gmbs_portal.deps import ServiceContainer


def create_app(
    settings: PortalSettings | None = None,
    container: ServiceContainer | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    container = container or ServiceContainer.build(settings)
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        await container.init()
        yield
        # Shutdown
        await container.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "code": "VALIDATION_FAILED",
                "details": jsonable_errors(exc),
            },
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from gmbs_portal.tenants.router import router as tenant_router
    from gmbs_portal.tenants.router import subscription_router
    from gmbs_portal.tokens.router import router as token_router
    from gmbs_portal.submissions.router import router as submission_router
    from gmbs_portal.reports.router import router as report_router
    from gmbs_portal.portal.router import router as portal_router
    from gmbs_portal.crm.router import router as crm_router
    from gmbs_portal.storage.router import router as file_router
    from gmbs_portal.billing.router import router as billing_router
    from gmbs_portal.audit.router import router as audit_router

    prefix = settings.api_prefix
    app.include_router(tenant_router, prefix=prefix)
    app.include_router(subscription_router, prefix=prefix)
    app.include_router(token_router, prefix=prefix)
    app.include_router(submission_router, prefix=prefix)
    app.include_router(report_router, prefix=prefix)
    app.include_router(portal_router, prefix=prefix)
    app.include_router(crm_router, prefix=prefix)
    app.include_router(file_router, prefix=prefix)
    app.include_router(billing_router, prefix=prefix)
    app.include_router(audit_router, prefix=prefix)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
