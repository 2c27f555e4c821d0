"""SQLAlchemy models."""

from consulting_agents.models.consulting_session import ConsultingSession, WorkflowState

__all__ = ["ConsultingSession", "WorkflowState"]
