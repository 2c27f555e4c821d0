"""Consulting session lifecycle service."""

from uuid import UUID

from consulting_agents.core.logging_utils import get_logger
from consulting_agents.schemas.session import SessionSnapshot
from consulting_agents.services.datastore.protocol import SessionGateway

logger = get_logger(__name__)

# Sessions opened without an identified user share this id
ANONYMOUS_USER_ID = "anonymous"


class SessionService:
    """Service for creating and reading consulting sessions."""

    def __init__(self, gateway: SessionGateway) -> None:
        """Initialize service with a session gateway.

        Args:
            gateway: Datastore gateway.
        """
        self._gateway = gateway

    async def create(self, user_id: str | None = None) -> SessionSnapshot:
        """Open a session waiting for the consultation subject.

        Args:
            user_id: Owner of the session; anonymous when omitted or blank.

        Returns:
            The new session record.
        """
        owner = (user_id or "").strip() or ANONYMOUS_USER_ID
        snapshot = await self._gateway.insert_session(owner)
        logger.info(
            "SESSION_OPENED",
            session_id=str(snapshot.id),
            anonymous=owner == ANONYMOUS_USER_ID,
        )
        return snapshot

    async def get(self, session_id: UUID) -> SessionSnapshot:
        """Get a session record.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        return await self._gateway.read_session(session_id)
