"""ConsultingSession SQLAlchemy model."""

from enum import Enum

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from consulting_agents.db.base import BaseModel, JSONType


class WorkflowState(str, Enum):
    """Consultation workflow state.

    The workflow is linear:
    WAITING_FOR_INFO -> START_RESEARCH -> START_REPORT -> FINISHED

    DECIDE_FLOW is reserved for a conditional "keep researching" branch and is
    never entered by the orchestrator.
    """

    WAITING_FOR_INFO = "WAITING_FOR_INFO"
    START_RESEARCH = "START_RESEARCH"
    DECIDE_FLOW = "DECIDE_FLOW"
    START_REPORT = "START_REPORT"
    FINISHED = "FINISHED"

    @property
    def order(self) -> int:
        """Position in the workflow; reserved states share their predecessor's slot."""
        return _STATE_ORDER[self]

    def can_advance_to(self, other: "WorkflowState") -> bool:
        """Check that moving to ``other`` never goes backward."""
        return other.order >= self.order and self is not WorkflowState.FINISHED


_STATE_ORDER = {
    WorkflowState.WAITING_FOR_INFO: 0,
    WorkflowState.START_RESEARCH: 1,
    WorkflowState.DECIDE_FLOW: 1,
    WorkflowState.START_REPORT: 2,
    WorkflowState.FINISHED: 3,
}


class ConsultingSession(BaseModel):
    """Consulting session model.

    One row per end-user consultation run. Chat history and research findings
    are stored as JSON arrays and always written whole.
    """

    __tablename__ = "consulting_sessions"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )

    # Ordered transcript of ChatMessage dicts
    chat_history: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )

    # Subject of analysis
    company_info: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )

    # One finding per completed research iteration
    research_results: Mapped[list] = mapped_column(
        JSONType,
        default=list,
        nullable=False,
    )

    report_final: Mapped[str] = mapped_column(
        Text,
        default="",
        nullable=False,
    )

    current_state: Mapped[str] = mapped_column(
        String(32),
        default=WorkflowState.WAITING_FOR_INFO.value,
        nullable=False,
    )

    research_counter: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    @property
    def is_finished(self) -> bool:
        """Check if the consultation has delivered its report."""
        return self.current_state == WorkflowState.FINISHED.value
