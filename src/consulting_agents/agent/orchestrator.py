"""Session orchestrator - drives one consultation from user input to report.

A consultation moves a session through
WAITING_FOR_INFO -> START_RESEARCH -> START_REPORT -> FINISHED. Every visible
step is a separate datastore write so subscribers can follow the run live:
the user message, the acknowledgement, each research iteration, the handoff
and the final report.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import mlflow
from mlflow.entities import SpanType

from consulting_agents.agent import messages
from consulting_agents.agent.nodes.reporter import synthesize_report
from consulting_agents.agent.nodes.researcher import run_research_iteration
from consulting_agents.core.config import Settings
from consulting_agents.core.exceptions import (
    DatastoreError,
    PersistenceError,
    SessionBusyError,
    SessionNotFoundError,
    ValidationError,
)
from consulting_agents.core.logging_utils import (
    StructuredLogger,
    async_timed_operation,
    get_logger,
    log_agent_transition,
    log_state_transition,
    truncate,
)
from consulting_agents.models.consulting_session import WorkflowState
from consulting_agents.schemas.session import AgentName, ChatMessage, SessionSnapshot
from consulting_agents.services.datastore.protocol import SessionGateway
from consulting_agents.services.llm.types import TextGenerator

logger = get_logger(__name__)


@dataclass
class OrchestrationConfig:
    """Configuration for a consultation run."""

    research_iterations: int = 2
    generation_timeout_seconds: float | None = None
    # Extra attempts for a failed datastore write before the run is aborted
    persistence_max_retries: int = 2
    persistence_retry_delay_seconds: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "OrchestrationConfig":
        return cls(
            research_iterations=settings.research_iterations,
            generation_timeout_seconds=settings.generation_timeout_seconds,
            persistence_max_retries=settings.persistence_max_retries,
            persistence_retry_delay_seconds=settings.persistence_retry_delay_seconds,
        )


class SessionOrchestrator:
    """Runs consultations against a session gateway and a text generator.

    One orchestrator instance is shared by the whole process. It refuses to
    start a second run for a session that already has one in flight.
    """

    def __init__(
        self,
        gateway: SessionGateway,
        generator: TextGenerator,
        config: OrchestrationConfig | None = None,
    ) -> None:
        self._gateway = gateway
        self._generator = generator
        self._config = config or OrchestrationConfig()
        self._active: set[UUID] = set()

    @property
    def config(self) -> OrchestrationConfig:
        return self._config

    def is_running(self, session_id: UUID) -> bool:
        """Check if a consultation is in flight or claimed for the session in this process."""
        return session_id in self._active

    def claim(self, session_id: UUID) -> None:
        """Reserve a session for a run that is scheduled but not started yet.

        The reservation is taken over by ``run_consultation(..., claimed=True)``,
        which releases it when the run ends. Callers that end up not scheduling
        the run must call ``release``.

        Raises:
            SessionBusyError: If the session is already claimed or running.
        """
        if session_id in self._active:
            raise SessionBusyError(str(session_id), "RUNNING")
        self._active.add(session_id)

    def release(self, session_id: UUID) -> None:
        self._active.discard(session_id)

    async def run_consultation(
        self, session_id: UUID, user_text: str, *, claimed: bool = False
    ) -> None:
        """Run a full consultation for a session.

        Generation failures never abort the run: they are persisted as
        error-marked findings or report text and the session still reaches
        FINISHED.

        Args:
            session_id: Session to drive.
            user_text: Subject of the consultation (company or project).
            claimed: The caller already holds the claim from ``claim``.

        Raises:
            ValidationError: If ``user_text`` is blank. Nothing is read or written.
            SessionNotFoundError: If the session cannot be read. Nothing is written.
            SessionBusyError: If the session is not waiting for input or a run
                is already in flight for it.
            PersistenceError: If a write still fails after retries. The session
                is left at its last persisted step.
            RuntimeError: If ``claimed`` is set but no claim is held.
        """
        if claimed and session_id not in self._active:
            raise RuntimeError(f"Session {session_id} was not claimed")

        if not user_text or not user_text.strip():
            if claimed:
                self.release(session_id)
            raise ValidationError("Consultation subject must not be empty", field="content")

        # Claim before the first await so overlapping calls cannot both start
        if not claimed:
            self.claim(session_id)
        run_logger = logger.with_context(session_id=str(session_id))
        try:
            session = await self._load(session_id, run_logger)
            if session.current_state is not WorkflowState.WAITING_FOR_INFO:
                run_logger.warning(
                    "CONSULTATION_REJECTED",
                    state=session.current_state.value,
                )
                raise SessionBusyError(str(session_id), session.current_state.value)

            with mlflow.start_span(name="consultation", span_type=SpanType.CHAIN) as span:
                span.set_attributes({
                    "session.id": str(session_id),
                    "session.user_id": session.user_id,
                    "research.iterations": self._config.research_iterations,
                })
                async with async_timed_operation(
                    run_logger,
                    "consultation",
                    iterations=self._config.research_iterations,
                ):
                    await self._run(session, user_text, run_logger)
        finally:
            self.release(session_id)

    async def _load(self, session_id: UUID, run_logger: StructuredLogger) -> SessionSnapshot:
        try:
            return await self._gateway.read_session(session_id)
        except SessionNotFoundError:
            run_logger.warning("CONSULTATION_SESSION_NOT_FOUND")
            raise
        except DatastoreError as e:
            run_logger.error("CONSULTATION_SESSION_READ_FAILED", error=e.message[:200])
            raise SessionNotFoundError(str(session_id), reason=e.message) from e

    async def _run(
        self,
        session: SessionSnapshot,
        user_text: str,
        run_logger: StructuredLogger,
    ) -> None:
        session_id = session.id
        total = self._config.research_iterations
        timeout = self._config.generation_timeout_seconds
        history: list[ChatMessage] = list(session.chat_history)
        state = session.current_state

        run_logger.info(
            "CONSULTATION_START",
            company_info=truncate(user_text, 80),
            iterations=total,
        )

        history.append(ChatMessage.user(user_text))
        await self._persist(session_id, {"chat_history": list(history)}, run_logger)

        state = await self._transition(
            session_id,
            state,
            WorkflowState.START_RESEARCH,
            run_logger,
            company_info=user_text,
        )
        log_agent_transition(run_logger, None, AgentName.PEDRO.value, reason="research")

        history.append(messages.acknowledgement(user_text))
        await self._persist(session_id, {"chat_history": list(history)}, run_logger)

        results: list[str] = []
        for index in range(total):
            progress: dict[str, Any] = {"research_counter": index}
            if index == 0:
                # A fresh run never carries findings from an earlier one
                progress["research_results"] = []
            await self._persist(session_id, progress, run_logger)

            finding = await run_research_iteration(
                self._generator,
                user_text,
                iteration=index + 1,
                total_iterations=total,
                timeout_seconds=timeout,
            )
            results.append(finding)
            await self._persist(
                session_id,
                {"research_results": list(results), "research_counter": index + 1},
                run_logger,
            )

            history.append(messages.finding(index + 1, finding))
            await self._persist(session_id, {"chat_history": list(history)}, run_logger)

        state = await self._transition(
            session_id, state, WorkflowState.START_REPORT, run_logger
        )
        log_agent_transition(
            run_logger, AgentName.PEDRO.value, AgentName.JUAN.value, reason="report"
        )

        history.append(messages.handoff())
        await self._persist(session_id, {"chat_history": list(history)}, run_logger)

        report = await synthesize_report(
            self._generator,
            user_text,
            list(results),
            timeout_seconds=timeout,
        )

        history.append(messages.delivery())
        await self._transition(
            session_id,
            state,
            WorkflowState.FINISHED,
            run_logger,
            report_final=report,
            chat_history=list(history),
        )

        run_logger.info(
            "CONSULTATION_FINISHED",
            findings=len(results),
            report_len=len(report),
            messages=len(history),
        )

    async def _transition(
        self,
        session_id: UUID,
        current: WorkflowState,
        target: WorkflowState,
        run_logger: StructuredLogger,
        **fields: Any,
    ) -> WorkflowState:
        """Persist a state change together with any accompanying fields."""
        if not current.can_advance_to(target):
            raise ValueError(f"Illegal workflow transition {current.value} -> {target.value}")

        await self._persist(session_id, {**fields, "current_state": target}, run_logger)
        log_state_transition(run_logger, current.value, target.value)
        return target

    async def _persist(
        self,
        session_id: UUID,
        fields: Mapping[str, Any],
        run_logger: StructuredLogger,
    ) -> SessionSnapshot:
        """Write fields, retrying datastore failures before giving up."""
        attempts = self._config.persistence_max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._gateway.update_session(session_id, fields)
            except DatastoreError as e:
                if attempt >= attempts:
                    run_logger.error(
                        "SESSION_PERSIST_FAILED",
                        fields=sorted(fields),
                        attempts=attempt,
                        error=e.message[:200],
                    )
                    raise PersistenceError(str(session_id), sorted(fields), e.message) from e

                delay = self._config.persistence_retry_delay_seconds * attempt
                run_logger.warning(
                    "SESSION_PERSIST_RETRY",
                    fields=sorted(fields),
                    attempt=attempt,
                    delay_seconds=delay,
                )
                await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise PersistenceError(str(session_id), sorted(fields), "retries exhausted")
