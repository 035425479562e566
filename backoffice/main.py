"""Back-office platform — FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from backoffice.approvals.router import router as approvals_router
from backoffice.assets.router import public_router as public_assets_router
from backoffice.assets.router import router as assets_router
from backoffice.audit.router import router as audit_router
from backoffice.auth.router import router as auth_router
from backoffice.common.exceptions import register_exception_handlers
from backoffice.common.rate_limit import limiter
from backoffice.config import settings
from backoffice.cron.router import router as cron_router
from backoffice.database import engine
from backoffice.depreciation.router import router as depreciation_router
from backoffice.leave.router import router as leave_router
from backoffice.legacy_export.router import router as migration_router
from backoffice.material_requests.router import router as material_requests_router
from backoffice.organization.router import (
    approvers_router,
    business_units_router,
    departments_router,
    gl_accounts_router,
    users_router,
)
from backoffice.overtime.router import router as overtime_router
from backoffice.reports.router import router as reports_router
from backoffice.storage.router import router as uploads_router
from backoffice.suppliers.router import items_router as erp_items_router
from backoffice.suppliers.router import router as suppliers_router
from backoffice.suppliers.service import dispose_erp_engine

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    logger.info("Back-office API starting (environment=%s)", settings.ENVIRONMENT)
    yield
    await dispose_erp_engine()
    await engine.dispose()
    logger.info("Back-office API stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging()

    app = FastAPI(
        title="Back Office",
        description="Multi-tenant back office: HR leave and overtime, assets and "
                    "depreciation, material requests, organization admin",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(business_units_router, prefix="/api/v1/business-units")
    app.include_router(departments_router, prefix="/api/v1/departments")
    app.include_router(users_router, prefix="/api/v1/users")
    app.include_router(approvers_router, prefix="/api/v1/department-approvers")
    app.include_router(gl_accounts_router, prefix="/api/v1/gl-accounts")
    app.include_router(leave_router, prefix="/api/v1/leave")
    app.include_router(overtime_router, prefix="/api/v1/overtime")
    app.include_router(approvals_router, prefix="/api/v1/approvals")
    app.include_router(assets_router, prefix="/api/v1/assets")
    app.include_router(depreciation_router, prefix="/api/v1/depreciation")
    app.include_router(cron_router, prefix="/api/v1")
    app.include_router(material_requests_router, prefix="/api/v1/material-requests")
    app.include_router(audit_router, prefix="/api/v1/audit-logs")
    app.include_router(migration_router, prefix="/api/v1/migration")
    app.include_router(uploads_router, prefix="/api/v1/uploads")
    app.include_router(suppliers_router, prefix="/api/v1/suppliers")
    app.include_router(erp_items_router, prefix="/api/v1")
    app.include_router(reports_router, prefix="/api/v1/reports")
    app.include_router(public_assets_router, prefix="/api/v1/public")

    return app


app = create_app()
