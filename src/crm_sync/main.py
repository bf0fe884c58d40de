"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan wiring of the contact store adapters and services, and the API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.crm_sync.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.crm_sync.api.v1.router import router as api_router
from src.crm_sync.config import Settings, get_settings
from src.crm_sync.contacts.crm import HubSpotAdapter, SupabaseAdapter
from src.crm_sync.contacts.operation_log import InMemoryOperationLog
from src.crm_sync.contacts.service import ReconciliationService
from src.crm_sync.contacts.sync import EmailVerificationSyncService
from src.crm_sync.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry

logger = structlog.get_logger(__name__)


def init_components(app: FastAPI, settings: Settings) -> None:
    """Build adapters and services from settings and attach them to app.state.

    A store without credentials gets no adapter; endpoints that need it
    answer 503 and readiness reports it as not configured. Reconciliation
    still runs with one store missing and reports that side as failed.
    """
    source_adapter = None
    if settings.supabase_configured():
        source_adapter = SupabaseAdapter(
            url=settings.SUPABASE_URL,
            api_key=settings.SUPABASE_ANON_KEY,
            table=settings.SUPABASE_CONTACTS_TABLE,
            timeout=settings.SUPABASE_TIMEOUT,
        )
    else:
        logger.warning("startup.supabase_not_configured")

    crm_adapter = None
    if settings.hubspot_configured():
        crm_adapter = HubSpotAdapter(
            api_key=settings.HUBSPOT_API_KEY,
            base_url=settings.HUBSPOT_BASE_URL,
            page_size=settings.HUBSPOT_PAGE_SIZE,
            max_pages=settings.HUBSPOT_MAX_PAGES,
            timeout=settings.HUBSPOT_TIMEOUT,
        )
    else:
        logger.warning("startup.hubspot_not_configured")

    operation_log = InMemoryOperationLog()

    app.state.source_adapter = source_adapter
    app.state.crm_adapter = crm_adapter
    app.state.operation_log = operation_log
    app.state.reconciliation_service = ReconciliationService(
        source=source_adapter,
        crm=crm_adapter,
        fetch_limit=settings.RECONCILIATION_FETCH_LIMIT,
    )
    if source_adapter is not None and crm_adapter is not None:
        app.state.sync_service = EmailVerificationSyncService(
            source=source_adapter,
            crm=crm_adapter,
            operation_log=operation_log,
        )
    else:
        app.state.sync_service = None

    logger.info(
        "startup.components_initialized",
        supabase=source_adapter is not None,
        hubspot=crm_adapter is not None,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configure logging and Sentry, build components."""
    settings = get_settings()
    configure_structlog()

    # Initialize Sentry if DSN is configured
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    init_components(app, settings)

    yield

    logger.info("shutdown.complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CRM Sync API",
        version="0.1.0",
        description="Contact reconciliation between Supabase and HubSpot",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    # Health checks and the authenticated /v1 routes
    app.include_router(api_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
