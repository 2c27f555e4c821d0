"""FastAPI dependency injection for shared services."""

from typing import cast

from fastapi import Request

from consulting_agents.agent.orchestrator import SessionOrchestrator
from consulting_agents.services.datastore.protocol import SessionGateway
from consulting_agents.services.session_service import SessionService


def get_session_gateway(request: Request) -> SessionGateway:
    """Get session gateway from app state."""
    return cast(SessionGateway, request.app.state.session_gateway)


def get_orchestrator(request: Request) -> SessionOrchestrator:
    """Get session orchestrator from app state."""
    return cast(SessionOrchestrator, request.app.state.orchestrator)


def get_session_service(request: Request) -> SessionService:
    """Build a session service over the shared gateway."""
    return SessionService(get_session_gateway(request))
