"""Consulting session and chat message schemas."""

import time
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from consulting_agents.db.base import as_utc
from consulting_agents.models.consulting_session import WorkflowState
from consulting_agents.schemas.common import BaseSchema


class MessageRole(str, Enum):
    """Chat message role."""

    USER = "user"
    AGENT = "agent"


class AgentName(str, Enum):
    """Agents taking part in a consultation."""

    PEDRO = "Pedro"  # technical researcher
    JUAN = "Juan"  # project manager, writes the report


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class ChatMessage(BaseSchema):
    """One chat turn.

    ``timestamp`` is only used for display; transcript order is the position
    in ``chat_history``.
    """

    role: MessageRole
    name: AgentName | None = None
    content: str
    timestamp: int = Field(default_factory=now_ms)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def agent(cls, name: AgentName, content: str) -> "ChatMessage":
        return cls(role=MessageRole.AGENT, name=name, content=content)

    def to_record(self) -> dict[str, Any]:
        """Serialize for the JSON ``chat_history`` column."""
        return self.model_dump(mode="json", exclude_none=True)


class SessionSnapshot(BaseSchema):
    """Full consulting session record as persisted."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)

    id: UUID
    user_id: str
    chat_history: list[ChatMessage] = Field(default_factory=list)
    company_info: str = ""
    research_results: list[str] = Field(default_factory=list)
    report_final: str = ""
    current_state: WorkflowState = WorkflowState.WAITING_FOR_INFO
    research_counter: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    def supersedes(self, other: "SessionSnapshot | None") -> bool:
        """Check if this record is a later write than ``other``.

        Every write moves ``updated_at`` strictly forward, so equal stamps
        mean the same write.
        """
        if other is None or self.updated_at is None or other.updated_at is None:
            return True
        return self.updated_at > other.updated_at

    @property
    def is_finished(self) -> bool:
        """Check if the report has been delivered."""
        return self.current_state == WorkflowState.FINISHED

    @property
    def is_busy(self) -> bool:
        """Check if a consultation run is in progress."""
        return self.current_state not in (
            WorkflowState.WAITING_FOR_INFO,
            WorkflowState.FINISHED,
        )


class CreateSessionRequest(BaseSchema):
    """Schema for creating a consulting session."""

    user_id: str | None = Field(default=None, max_length=255)


class SendMessageRequest(BaseSchema):
    """Schema for submitting the subject of a consultation."""

    content: str = Field(..., min_length=1)


class SendMessageResponse(BaseSchema):
    """Response after a consultation has been scheduled."""

    session_id: UUID
    accepted: bool = True
