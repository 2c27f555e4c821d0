"""Datastore gateway contract."""

from collections.abc import Mapping
from typing import Any, Protocol
from uuid import UUID

from consulting_agents.schemas.session import SessionSnapshot
from consulting_agents.services.datastore.broker import SessionSubscription

# Fields a partial update may touch; id, user_id and timestamps are immutable
UPDATABLE_FIELDS = frozenset({
    "chat_history",
    "company_info",
    "research_results",
    "report_final",
    "current_state",
    "research_counter",
})


class SessionGateway(Protocol):
    """Read, partially update, insert and observe consulting sessions."""

    async def read_session(self, session_id: UUID) -> SessionSnapshot:
        """Return the session record.

        Raises:
            SessionNotFoundError: If no session has this id.
            DatastoreError: If the store could not be read.
        """
        ...

    async def update_session(
        self, session_id: UUID, fields: Mapping[str, Any]
    ) -> SessionSnapshot:
        """Apply a partial update and return the full committed record.

        Unspecified fields are left untouched. Every successful update is
        delivered to the session's subscribers in call order.

        Raises:
            SessionNotFoundError: If no session has this id.
            ValidationError: If ``fields`` names a non-updatable field.
            DatastoreError: If the write failed.
        """
        ...

    async def insert_session(self, user_id: str) -> SessionSnapshot:
        """Create a session waiting for its first message."""
        ...

    def subscribe(self, session_id: UUID) -> SessionSubscription:
        """Attach a subscriber receiving the full record after every update."""
        ...
