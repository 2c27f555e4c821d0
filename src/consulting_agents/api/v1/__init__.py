"""API v1 router."""

from fastapi import APIRouter

from consulting_agents.api.v1 import health, sessions

router = APIRouter()

# Include sub-routers
router.include_router(health.router, tags=["Health"])
router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
