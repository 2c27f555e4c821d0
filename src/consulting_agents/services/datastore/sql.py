"""SQLAlchemy-backed session gateway."""

import asyncio
from collections.abc import Mapping
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel as PydanticModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from consulting_agents.core.exceptions import DatastoreError, SessionNotFoundError, ValidationError
from consulting_agents.core.logging_utils import get_logger
from consulting_agents.db.base import next_update_time
from consulting_agents.models.consulting_session import ConsultingSession, WorkflowState
from consulting_agents.schemas.session import SessionSnapshot
from consulting_agents.services.datastore.broker import SessionChangeBroker, SessionSubscription
from consulting_agents.services.datastore.protocol import UPDATABLE_FIELDS

logger = get_logger(__name__)


def _to_column_value(value: Any) -> Any:
    """Convert schema objects into JSON/column-compatible values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, PydanticModel):
        return value.model_dump(mode="json", exclude_none=True)
    if isinstance(value, list | tuple):
        return [_to_column_value(item) for item in value]
    return value


class SqlSessionGateway:
    """Session gateway over an async SQLAlchemy session factory.

    Each call runs in its own transaction. Updates are serialized through a
    lock so that commit order and notification order are the same.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        broker: SessionChangeBroker | None = None,
    ) -> None:
        self._session_maker = session_maker
        self._broker = broker or SessionChangeBroker()
        self._write_lock = asyncio.Lock()

    @property
    def broker(self) -> SessionChangeBroker:
        return self._broker

    async def read_session(self, session_id: UUID) -> SessionSnapshot:
        try:
            async with self._session_maker() as db:
                row = await db.get(ConsultingSession, session_id)
                if row is None:
                    raise SessionNotFoundError(str(session_id))
                return SessionSnapshot.model_validate(row)
        except SQLAlchemyError as e:
            logger.error("SESSION_READ_FAILED", session_id=str(session_id), error=str(e)[:200])
            raise DatastoreError("read", str(e)) from e

    async def insert_session(self, user_id: str) -> SessionSnapshot:
        try:
            async with self._session_maker() as db:
                row = ConsultingSession(
                    user_id=user_id,
                    chat_history=[],
                    company_info="",
                    research_results=[],
                    report_final="",
                    current_state=WorkflowState.WAITING_FOR_INFO.value,
                    research_counter=0,
                )
                db.add(row)
                await db.commit()
                snapshot = SessionSnapshot.model_validate(row)
        except SQLAlchemyError as e:
            logger.error("SESSION_INSERT_FAILED", user_id=user_id, error=str(e)[:200])
            raise DatastoreError("insert", str(e)) from e

        logger.info("SESSION_CREATED", session_id=str(snapshot.id), user_id=user_id)
        return snapshot

    async def update_session(
        self, session_id: UUID, fields: Mapping[str, Any]
    ) -> SessionSnapshot:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update session fields: {', '.join(sorted(unknown))}",
                field=sorted(unknown)[0],
            )
        if not fields:
            raise ValidationError("Empty session update")

        async with self._write_lock:
            try:
                async with self._session_maker() as db:
                    row = await db.get(ConsultingSession, session_id)
                    if row is None:
                        raise SessionNotFoundError(str(session_id))
                    for name, value in fields.items():
                        # JSON columns are replaced, never mutated in place
                        setattr(row, name, _to_column_value(value))
                    row.updated_at = next_update_time(row.updated_at)
                    await db.commit()
                    snapshot = SessionSnapshot.model_validate(row)
            except SQLAlchemyError as e:
                logger.error(
                    "SESSION_UPDATE_FAILED",
                    session_id=str(session_id),
                    fields=sorted(fields),
                    error=str(e)[:200],
                )
                raise DatastoreError("update", str(e)) from e

            notified = self._broker.publish(snapshot)

        logger.debug(
            "SESSION_UPDATED",
            session_id=str(session_id),
            fields=sorted(fields),
            state=snapshot.current_state.value,
            subscribers=notified,
        )
        return snapshot

    def subscribe(self, session_id: UUID) -> SessionSubscription:
        return self._broker.subscribe(session_id)
