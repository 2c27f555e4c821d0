"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from consulting_agents import __version__
from consulting_agents.agent.orchestrator import OrchestrationConfig, SessionOrchestrator
from consulting_agents.api.v1 import router as api_v1_router
from consulting_agents.core.config import Settings, get_settings
from consulting_agents.core.exceptions import AppException, app_exception_handler, http_exception_handler
from consulting_agents.core.tracing import setup_tracing
from consulting_agents.db.session import close_engine, create_all, create_engine, create_session_maker
from consulting_agents.middleware.logging import RequestLoggingMiddleware, setup_logging
from consulting_agents.services.datastore.broker import SessionChangeBroker
from consulting_agents.services.datastore.sql import SqlSessionGateway
from consulting_agents.services.llm.client import GenerationClient

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Builds every shared handle once and places it on ``app.state``; routes
    reach them through ``core.dependencies``.
    """
    settings: Settings = app.state.settings

    setup_logging(settings.log_level, settings.log_format)
    setup_tracing(settings)

    engine = create_engine(settings)
    if settings.is_sqlite:
        # PostgreSQL schemas are managed by Alembic (alembic upgrade head)
        await create_all(engine)

    broker = SessionChangeBroker()
    gateway = SqlSessionGateway(create_session_maker(engine), broker)
    generator = GenerationClient(settings)

    app.state.engine = engine
    app.state.session_gateway = gateway
    app.state.generation_client = generator
    app.state.orchestrator = SessionOrchestrator(
        gateway,
        generator,
        OrchestrationConfig.from_settings(settings),
    )

    logger.info(
        "Application started: env=%s, research_iterations=%d, generation_configured=%s",
        settings.app_env,
        settings.research_iterations,
        generator.is_configured,
    )

    yield

    logger.info("Shutdown signal received, cleaning up...")

    # End open streams before the engine goes away
    broker.close()
    await generator.close()
    await close_engine(engine)
    logger.info("Database connections closed - shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Consulting Agents API - web-grounded research and executive reports",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)

    # Include API routers
    app.include_router(api_v1_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers."""
        return {"status": "healthy", "service": "consulting-agents"}

    return app


# Create application instance
app = create_app()
