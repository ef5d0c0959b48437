"""
Service Desk - Main Application
===============================

IT service-desk backend: requesters file tickets, technicians claim and
resolve them, supervisors track SLA compliance.

Modules:
- Tickets: lifecycle state machine, concurrency-safe claiming, field
  report linkage, escalation/approval flags, technician roster
- SLA: resolution deadlines, hot-reloadable policy, compliance reporting

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, state machine and value objects
- Infrastructure: Database, notification webhook, policy file watcher
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from servicedesk.config import settings
from servicedesk.core import ApplicationException

# Infrastructure
from servicedesk.infrastructure.database import (
    init_database, close_database, create_tables, get_engine
)

# Module services
from servicedesk.sla.infrastructure import SLAPolicyManager
from servicedesk.tickets.infrastructure import (
    WebhookNotificationPublisher, create_notification_publisher
)

# Module Routers
from servicedesk.sla.interfaces import sla_router
from servicedesk.tickets.interfaces import (
    tickets_router, field_reports_router, technicians_router
)

# Middleware
from servicedesk.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)

# Logging
from servicedesk.shared.infrastructure.logging import setup_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database
    3. Create database tables
    4. Load SLA policy and start watching it
    5. Build the notification publisher

    SHUTDOWN:
    1. Stop policy watcher
    2. Close notification client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment, settings.app_name)
    logger.info("Starting Service Desk", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()

    # Create tables (for development - use migrations in production)
    logger.info("Creating database tables")
    try:
        await create_tables()
    except (SQLAlchemyError, OSError) as e:
        logger.warning("Database not available - running in degraded mode", extra={"error": str(e)})

    logger.info("Loading SLA policy")
    policy_manager = SLAPolicyManager()
    policy_manager.load(settings.sla_config_path)
    if settings.sla_watch_config:
        policy_manager.start_watching()
    app.state.sla_policy = policy_manager

    publisher = create_notification_publisher()
    app.state.notification_publisher = publisher

    logger.info("Service Desk started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Service Desk")

    policy_manager.stop_watching()

    if isinstance(publisher, WebhookNotificationPublisher):
        await publisher.close()

    await close_database()

    logger.info("Service Desk shutdown complete")


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Tests build it without the lifespan and wire the database and app state
    themselves.
    """
    application = FastAPI(
        title="Service Desk API",
        description="""
    ## Service Desk Ticket Lifecycle & SLA Engine

    ### Tickets
    - `POST /tickets` - File a ticket
    - `GET /tickets/unassigned` - Unassigned queue
    - `POST /tickets/{id}/claim` - Claim a ticket (exactly one concurrent claim wins)
    - `POST /tickets/{id}/status` - Resolve or close
    - `POST /tickets/{id}/escalate` - Escalate
    - `POST /field-reports` - Submit a field report (may reopen the ticket)

    ### SLA
    - `GET /sla/tickets/{id}` - SLA position of a ticket
    - `GET /sla/dashboard` - Dashboard
    - `GET /sla/compliance` - Compliance overall and per technician

    ### Identity
    Every request carries `X-Actor-Id` and `X-Actor-Role`
    (`requester`, `technician`, `admin`) set by the gateway.

    ### Status lifecycle
    ```
    open ──claim──▶ in_progress ──resolve──▶ resolved ──close──▶ closed
      ▲                  │                       │
      └── cannot-resolve field report ◀──────────┘
    ```
    """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None
    )

    # === CORS Middleware ===
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    application.add_middleware(LoggingMiddleware)
    application.add_middleware(CorrelationIDMiddleware)
    application.add_exception_handler(ApplicationException, application_exception_handler)
    application.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    application.include_router(tickets_router)
    application.include_router(field_reports_router)
    application.include_router(technicians_router)
    application.include_router(sla_router)

    application.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    application.add_api_route("/", root, methods=["GET"], tags=["Root"])

    return application


# === Health Check Endpoint ===

async def health_check(request: Request):
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Database connectivity
    - SLA policy state
    - Notification delivery mode
    """
    checks = {}

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {e}"

    policy = getattr(request.app.state, "sla_policy", None)
    if isinstance(policy, SLAPolicyManager):
        checks["sla_policy"] = "watching" if policy.is_watching else "loaded"
    else:
        checks["sla_policy"] = "defaults"

    publisher = getattr(request.app.state, "notification_publisher", None)
    checks["notifications"] = "webhook" if isinstance(publisher, WebhookNotificationPublisher) else "log"

    healthy = checks["database"] == "connected"
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }


async def root():
    """Root endpoint with API information."""
    return {
        "service": "Service Desk",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "tickets": {
                "prefix": "/tickets",
                "endpoints": [
                    "POST /tickets - File a ticket",
                    "GET /tickets/unassigned - Unassigned queue",
                    "POST /tickets/{id}/claim - Claim a ticket",
                    "POST /tickets/{id}/status - Change status",
                    "POST /field-reports - Submit a field report",
                ]
            },
            "sla": {
                "prefix": "/sla",
                "endpoints": [
                    "GET /sla/tickets/{id} - Ticket SLA position",
                    "GET /sla/dashboard - Dashboard",
                    "GET /sla/compliance - Compliance",
                ]
            }
        }
    }


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "servicedesk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
