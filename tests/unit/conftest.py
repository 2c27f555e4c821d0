"""Unit test fixtures.

These fixtures provide:
- Settings pointing at an in-memory SQLite database
- A real SqlSessionGateway over that database with its change broker
- Scripted stand-ins for the generation client
- A gateway wrapper that fails a chosen number of writes
"""

from collections.abc import AsyncIterator, Mapping
from typing import Any
from unittest.mock import AsyncMock
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from consulting_agents.agent.orchestrator import OrchestrationConfig, SessionOrchestrator
from consulting_agents.core.config import Settings
from consulting_agents.core.exceptions import DatastoreError
from consulting_agents.db.session import close_engine, create_all, create_engine, create_session_maker
from consulting_agents.schemas.session import SessionSnapshot
from consulting_agents.services.datastore.broker import SessionChangeBroker, SessionSubscription
from consulting_agents.services.datastore.sql import SqlSessionGateway
from consulting_agents.services.llm.types import GenerationResult

# ---------------------------------------------------------------------------
# Settings and database
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        openai_api_key=None,
        tracing_enabled=False,
        research_iterations=2,
        persistence_retry_delay_seconds=0,
        llm_base_delay_seconds=0.01,
        llm_max_delay_seconds=0.01,
    )


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    """In-memory database with the schema created."""
    engine = create_engine(settings)
    await create_all(engine)
    yield engine
    await close_engine(engine)


@pytest.fixture
def broker() -> SessionChangeBroker:
    return SessionChangeBroker()


@pytest.fixture
def gateway(engine: AsyncEngine, broker: SessionChangeBroker) -> SqlSessionGateway:
    return SqlSessionGateway(create_session_maker(engine), broker)


@pytest_asyncio.fixture
async def waiting_session(gateway: SqlSessionGateway) -> SessionSnapshot:
    """A fresh session waiting for the consultation subject."""
    return await gateway.insert_session("test-user-123")


# ---------------------------------------------------------------------------
# Generation stubs
# ---------------------------------------------------------------------------


def generation_result(text: str, model: str = "test-model") -> GenerationResult:
    return GenerationResult(text=text, model=model, duration_ms=12.0)


@pytest.fixture
def scripted_generator():
    """Factory for a generator answering prompts from a script.

    Each script item is returned in call order; exceptions are raised.

    Returns:
        Function building an AsyncMock with a ``generate`` method.
    """

    def _create(*script: str | BaseException) -> AsyncMock:
        generator = AsyncMock()
        generator.generate = AsyncMock(
            side_effect=[
                item if isinstance(item, BaseException) else generation_result(item)
                for item in script
            ]
        )
        return generator

    return _create


@pytest.fixture
def orchestrator_factory(gateway: SqlSessionGateway):
    """Factory for an orchestrator over the test gateway.

    Returns:
        Function creating a SessionOrchestrator with optional overrides.
    """

    def _create(
        generator: Any,
        research_iterations: int = 2,
        persistence_max_retries: int = 2,
        session_gateway: Any = None,
    ) -> SessionOrchestrator:
        return SessionOrchestrator(
            session_gateway or gateway,
            generator,
            OrchestrationConfig(
                research_iterations=research_iterations,
                generation_timeout_seconds=5,
                persistence_max_retries=persistence_max_retries,
                persistence_retry_delay_seconds=0,
            ),
        )

    return _create


# ---------------------------------------------------------------------------
# Failure injection
# ---------------------------------------------------------------------------


class FlakyGateway:
    """Gateway wrapper whose writes fail on chosen call numbers.

    Attributes:
        update_calls: Number of update attempts seen (including failed ones).
    """

    def __init__(
        self,
        inner: SqlSessionGateway,
        fail_on: set[int] | None = None,
        fail_from: int | None = None,
        fail_reads: bool = False,
    ) -> None:
        self._inner = inner
        self._fail_on = fail_on or set()
        self._fail_from = fail_from
        self._fail_reads = fail_reads
        self.update_calls = 0

    async def read_session(self, session_id: UUID) -> SessionSnapshot:
        if self._fail_reads:
            raise DatastoreError("read", "connection refused")
        return await self._inner.read_session(session_id)

    async def update_session(
        self, session_id: UUID, fields: Mapping[str, Any]
    ) -> SessionSnapshot:
        self.update_calls += 1
        failing = self.update_calls in self._fail_on or (
            self._fail_from is not None and self.update_calls >= self._fail_from
        )
        if failing:
            raise DatastoreError("update", "connection reset")
        return await self._inner.update_session(session_id, fields)

    async def insert_session(self, user_id: str) -> SessionSnapshot:
        return await self._inner.insert_session(user_id)

    def subscribe(self, session_id: UUID) -> SessionSubscription:
        return self._inner.subscribe(session_id)


def drain(subscription: SessionSubscription) -> list[SessionSnapshot]:
    """Collect every snapshot already queued on a subscription."""
    snapshots = []
    while subscription.pending:
        item = subscription._queue.get_nowait()
        if item is not None:
            snapshots.append(item)
    return snapshots


@pytest.fixture
def flaky_gateway(gateway: SqlSessionGateway):
    """Factory wrapping the test gateway in a FlakyGateway."""

    def _create(**kwargs: Any) -> FlakyGateway:
        return FlakyGateway(gateway, **kwargs)

    return _create


@pytest.fixture
def drain_queued():
    """Function collecting the snapshots queued on a subscription."""
    return drain
