"""
Ticketflow - Main Application
=============================

Workflow & SLA engine for a multi-tenant ticket tracker.

Modules:
- Workflow: ticket state machine, transition actions, multi-approver approvals
- SLA: timers with pause/resume accounting and breach detection

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities and value objects
- Infrastructure: Database, config file watcher, scheduler, webhook notifier
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import State

# Configuration and Core
from ticketflow.config import settings
from ticketflow.core import ApplicationException
from ticketflow.core.unit_of_work import AbstractUnitOfWork

# Infrastructure
from ticketflow.infrastructure.database import close_database, create_tables, init_database
from ticketflow.infrastructure.database.unit_of_work import sqlalchemy_uow_factory

# Shared
from ticketflow.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    global_exception_handler,
)
from ticketflow.shared.application import IActivitySink, NotificationDispatcher
from ticketflow.shared.domain.clock import Clock, utc_now
from ticketflow.shared.infrastructure.activity import LoggingActivitySink
from ticketflow.shared.infrastructure.logging import get_logger, log_latency, setup_logging
from ticketflow.shared.infrastructure.notifications import WebhookNotifier

# SLA Module
from ticketflow.sla.application import ISLADefinitionProvider, SLABreachSweeper, SLATimerService
from ticketflow.sla.infrastructure.external import SLAConfigManager, SLAScheduler
from ticketflow.sla.interfaces import sla_router

# Workflow Module
from ticketflow.workflow.application import ApprovalCoordinator, TransitionEngine, TransitionExecutor
from ticketflow.workflow.interfaces import workflow_router

logger = get_logger(__name__)


def wire_services(
    state: State,
    uow_factory: Callable[[], AbstractUnitOfWork],
    definitions: ISLADefinitionProvider,
    dispatcher: Optional[NotificationDispatcher] = None,
    activity: Optional[IActivitySink] = None,
    clock: Clock = utc_now,
) -> None:
    """
    Build the application services and store them on ``app.state``.

    The SLA service comes first: the transition executor drives it on
    every status change, and both the engine and the approval coordinator
    share that executor.
    """
    sla_timers = SLATimerService(
        uow_factory, definitions, activity=activity, dispatcher=dispatcher, clock=clock
    )
    executor = TransitionExecutor(
        sla=sla_timers, activity=activity, dispatcher=dispatcher, clock=clock
    )
    coordinator = ApprovalCoordinator(uow_factory, executor)
    engine = TransitionEngine(uow_factory, executor, coordinator)

    state.uow_factory = uow_factory
    state.sla_timers = sla_timers
    state.approval_coordinator = coordinator
    state.transition_engine = engine
    state.sla_sweeper = SLABreachSweeper(uow_factory, sla_timers, clock=clock)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Load SLA configuration and watch it for changes
    4. Build notifier, activity sink and application services
    5. Start the breach sweep scheduler

    SHUTDOWN:
    1. Stop the scheduler and the config watcher
    2. Flush pending notifications and close the webhook client
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting Ticketflow", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    logger.info("Initializing database")
    init_database()
    # For development - use migrations in production
    await create_tables()

    logger.info("Loading SLA configuration")
    sla_config_manager = SLAConfigManager()
    sla_config_manager.load(settings.sla_config_path)
    sla_config_manager.start_watching()

    notifier = WebhookNotifier()
    dispatcher = NotificationDispatcher(notifier)

    wire_services(
        app.state,
        sqlalchemy_uow_factory(),
        sla_config_manager,
        dispatcher=dispatcher,
        activity=LoggingActivitySink(),
    )

    sla_scheduler: Optional[SLAScheduler] = None
    if settings.sla_evaluation_interval > 0:
        sweeper: SLABreachSweeper = app.state.sla_sweeper

        async def sla_sweep_job() -> None:
            """Background breach sweep."""
            with log_latency(logger, "sla_breach_sweep"):
                await sweeper.sweep()

        sla_scheduler = SLAScheduler(interval_seconds=settings.sla_evaluation_interval)
        await sla_scheduler.start(sla_sweep_job)
    app.state.sla_scheduler = sla_scheduler

    logger.info("Ticketflow started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Ticketflow")

    if sla_scheduler:
        await sla_scheduler.stop()

    sla_config_manager.stop_watching()

    await dispatcher.drain()
    await notifier.close()

    await close_database()

    logger.info("Ticketflow shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Ticketflow API",
    description="""
    ## Ticket Workflow & SLA Engine

    ### Workflow Module

    **Endpoints:**
    - `GET /workflows` - List workflow definitions
    - `GET /workflows/{id}` - Workflow with its transitions
    - `GET /tickets/{id}/transitions` - Transitions available to the caller
    - `POST /tickets/{id}/transitions` - Request a transition
    - `GET /tickets/{id}/transitions/history` - Transition history

    ### Approvals

    - `GET /approvals/pending` - Approvals waiting on the caller
    - `GET /approvals/{id}` - Approval detail
    - `POST /approvals/{id}/respond` - Approve or reject (unanimous quorum)

    ### SLA Module

    - `POST /sla/tickets/{id}/start|pause|resume|complete` - Timer lifecycle
    - `POST /sla/tickets/{id}/priority` - Reprioritize and supersede the timer
    - `GET /sla/tickets/{id}` - Timers with pause history
    - `GET /sla/tickets/{id}/breach` - Breach check
    - `GET /sla/breaches` - Breach report
    - `GET /sla/at-risk` - Timers close to their deadline

    The acting user is passed in the `X-User-Id` header.
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(LoggingMiddleware)
app.add_middleware(CorrelationIDMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(workflow_router)
app.include_router(sla_router)


# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {"sla_scheduler": "running"}
                }
            }
        }
    }
})
async def health_check():
    """Health check endpoint for load balancers and orchestrators."""
    scheduler = getattr(app.state, "sla_scheduler", None)
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": {
            "sla_scheduler": "running" if scheduler and scheduler.is_running else "stopped",
        }
    }


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Ticketflow",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "workflow": {"prefix": "/", "resources": ["workflows", "tickets", "approvals"]},
            "sla": {"prefix": "/sla"},
        }
    }


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "ticketflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
