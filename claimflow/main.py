"""
Lecturer Claim Workflow Engine

FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from claimflow import __version__
from claimflow.api import notifications_router, router as claims_router
from claimflow.services.workflow import WorkflowService
from claimflow.settings import Settings, settings as default_settings

# Configure logging
logging.basicConfig(
    level=default_settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifecycle management."""
        logger.info(f"Starting {settings.app_name}")
        app.state.workflow_service = WorkflowService.from_settings(settings)
        yield
        await app.state.workflow_service.shutdown()
        logger.info(f"Shutting down {settings.app_name}")

    app = FastAPI(
        title=settings.app_name,
        description="""
    Approval workflow for lecturer hour claims.

    ## Workflow

    1. Lecturer creates a claim with `POST /claims` (submitted unless `submit=false`)
    2. Coordinator approves or rejects with `POST /claims/{id}/transitions`
    3. Manager gives final approval or rejects
    4. HR processes payment, one claim at a time or in bulk via `POST /claims/payments`

    Every transition must name the `expected_status` the caller last saw;
    a stale status is refused with 409.

    ## Notifications

    Connect to `/ws/notifications?topic=Coordinators` (or `Managers`, `HR`,
    `Lecturer_{id}`) to receive events as claims move.
    """,
        version=__version__,
        lifespan=lifespan
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(claims_router)
    app.include_router(notifications_router)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint with system info."""
        return {
            "system": settings.app_name,
            "version": __version__,
            "status": "operational",
            "docs": "/docs"
        }

    @app.get("/health", tags=["health"])
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
