"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from doula_crm import __version__
from doula_crm.core.config import get_settings
from doula_crm.core.database import init_db
from doula_crm.core.errors import CRMError
from doula_crm.core.logging_config import setup_logging
from doula_crm.client_services.router import router as services_router
from doula_crm.contracts.router import router as contracts_router
from doula_crm.dashboards.router import router as dashboards_router
from doula_crm.documents.router import router as documents_router
from doula_crm.invoices.router import router as invoices_router
from doula_crm.leads.router import clients_router, router as leads_router
from doula_crm.list_views.router import router as list_views_router
from doula_crm.meetings.router import router as meetings_router
from doula_crm.metadata.router import router as metadata_router
from doula_crm.navigation.router import router as navigation_router
from doula_crm.notifications.router import router as notifications_router
from doula_crm.organizations.router import router as organizations_router
from doula_crm.payments.router import router as payments_router
from doula_crm.records.router import router as records_router
from doula_crm.referrals.router import router as referrals_router
from doula_crm.reports.router import router as reports_router
from doula_crm.sharing.router import router as sharing_router
from doula_crm.team.router import router as team_router
from doula_crm.webhooks.router import router as webhooks_router
from doula_crm.workflows.router import router as workflows_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    setup_logging()
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} {__version__}")
    init_db()
    yield
    logger.info("Shutting down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Practice management for doulas: leads, clients, billing, automation and reporting",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CRMError)
    async def crm_error_handler(request: Request, exc: CRMError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # Organization and people
    app.include_router(organizations_router)  # /organizations
    app.include_router(team_router)           # /team
    app.include_router(referrals_router)      # /referral-partners

    # Practice records
    app.include_router(leads_router)          # /leads
    app.include_router(clients_router)        # /clients
    app.include_router(services_router)       # /services
    app.include_router(meetings_router)       # /meetings
    app.include_router(invoices_router)       # /invoices
    app.include_router(payments_router)       # /payments
    app.include_router(contracts_router)      # /contracts
    app.include_router(documents_router)      # /documents

    # Platform
    app.include_router(metadata_router)       # /metadata
    app.include_router(records_router)        # /records
    app.include_router(sharing_router)        # /sharing
    app.include_router(list_views_router)     # /list-views
    app.include_router(reports_router)        # /reports
    app.include_router(dashboards_router)     # /dashboards
    app.include_router(navigation_router)     # /navigation
    app.include_router(notifications_router)  # /notifications
    app.include_router(webhooks_router)       # /webhooks
    app.include_router(workflows_router)      # /workflows

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "endpoints": {
                "leads": "/leads, /clients - Lead capture, pipeline and client records",
                "billing": "/services, /invoices, /payments - Packages, invoicing and payments",
                "records": "/records/{object} - Generic records for standard and custom objects",
                "metadata": "/metadata/* - Objects, fields, picklists, layouts and field security",
                "sharing": "/sharing/* - Sharing rules, manual shares and record access",
                "list-views": "/list-views/* - Saved filtered views and bulk actions",
                "reports": "/reports/* - Reports and practice analytics",
                "dashboards": "/dashboards/* - Widget dashboards",
                "workflows": "/workflows/* - Automation",
                "webhooks": "/webhooks/* - Outbound event delivery",
            },
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
