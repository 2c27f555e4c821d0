"""Pydantic schemas shared by the services and the API."""

from consulting_agents.schemas.common import BaseSchema, ErrorResponse
from consulting_agents.schemas.session import (
    AgentName,
    ChatMessage,
    CreateSessionRequest,
    MessageRole,
    SendMessageRequest,
    SendMessageResponse,
    SessionSnapshot,
)

__all__ = [
    "AgentName",
    "BaseSchema",
    "ChatMessage",
    "CreateSessionRequest",
    "ErrorResponse",
    "MessageRole",
    "SendMessageRequest",
    "SendMessageResponse",
    "SessionSnapshot",
]
