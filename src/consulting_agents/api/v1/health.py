"""Health check endpoint."""

import logging

from fastapi import APIRouter

from consulting_agents import __version__
from consulting_agents.schemas.common import HealthResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint for monitoring and load balancer health checks.

    The database is not probed so the check passes while it is unreachable.
    """
    logger.debug("Health check called")
    return HealthResponse(status="healthy", database="not_checked", version=__version__)
