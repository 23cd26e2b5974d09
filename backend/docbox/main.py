import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docbox.config import Settings
from docbox.core.exceptions import register_exception_handlers
from docbox.database import Base, build_engine, build_session_factory
from docbox.integrations.dispatcher import WebhookDispatcher

# Import all models so Base.metadata knows about them
import docbox.auth.models  # noqa: F401
import docbox.organizations.models  # noqa: F401
import docbox.firms.models  # noqa: F401
import docbox.contacts.models  # noqa: F401
import docbox.masterdata.models  # noqa: F401
import docbox.boxes.models  # noqa: F401
import docbox.payments.models  # noqa: F401
import docbox.tasks.models  # noqa: F401
import docbox.audit.models  # noqa: F401
import docbox.notifications.models  # noqa: F401
import docbox.integrations.models  # noqa: F401
import docbox.export.models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = application.state.settings

    # Ensure data directories exist before DB connection
    Path(settings.storage_path).mkdir(parents=True, exist_ok=True)
    if settings.is_sqlite:
        db_path = settings.database_url.split("///")[-1]
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    engine = build_engine(settings.database_url)

    # Auto-create tables for SQLite in development
    if settings.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    application.state.dispatcher = WebhookDispatcher(settings)

    from docbox.core.scheduler import setup_scheduler, shutdown_scheduler

    if settings.scheduler_enabled:
        setup_scheduler(application.state.session_factory, settings, application.state.dispatcher)
    else:
        logger.info("Background scheduler disabled")

    yield

    shutdown_scheduler()
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()

    fastapi_app = FastAPI(
        title="DocBox",
        description="Accounting document boxes for Thai SMEs and their accounting firms",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.settings = settings

    # CORS
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    from docbox.auth.router import router as auth_router
    from docbox.organizations.router import router as organizations_router
    from docbox.firms.router import client_router as organization_firms_router
    from docbox.firms.router import router as firms_router
    from docbox.contacts.router import router as contacts_router
    from docbox.masterdata.router import router as masterdata_router
    from docbox.boxes.router import router as boxes_router
    from docbox.payments.router import router as payments_router
    from docbox.tasks.router import router as tasks_router
    from docbox.audit.router import router as audit_router
    from docbox.notifications.router import router as notifications_router
    from docbox.integrations.router import router as integrations_router
    from docbox.export.router import router as export_router

    fastapi_app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
    fastapi_app.include_router(organizations_router, prefix="/api/organizations", tags=["organizations"])
    fastapi_app.include_router(
        organization_firms_router,
        prefix="/api/organizations/current/accounting-firms",
        tags=["organizations"],
    )
    fastapi_app.include_router(firms_router, prefix="/api/firms", tags=["firms"])
    fastapi_app.include_router(contacts_router, prefix="/api/contacts", tags=["contacts"])
    fastapi_app.include_router(masterdata_router, prefix="/api/master-data", tags=["master-data"])
    fastapi_app.include_router(boxes_router, prefix="/api/boxes", tags=["boxes"])
    fastapi_app.include_router(payments_router, prefix="/api/boxes", tags=["payments"])
    fastapi_app.include_router(tasks_router, prefix="/api/tasks", tags=["tasks"])
    fastapi_app.include_router(audit_router, prefix="/api/audit-logs", tags=["audit"])
    fastapi_app.include_router(notifications_router, prefix="/api/notifications", tags=["notifications"])
    fastapi_app.include_router(integrations_router, prefix="/api/integrations", tags=["integrations"])
    fastapi_app.include_router(export_router, prefix="/api/export", tags=["export"])

    # System endpoints
    @fastapi_app.get("/api/system/health")
    async def health():
        return {"data": {"status": "healthy"}}

    # Register exception handlers
    register_exception_handlers(fastapi_app)

    return fastapi_app


app = create_app()
