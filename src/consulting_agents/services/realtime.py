"""Realtime view of one consulting session.

The view keeps the latest committed snapshot of a session and replaces it
wholesale whenever the gateway delivers an update. It only reads.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from types import TracebackType
from uuid import UUID

from consulting_agents.core.logging_utils import get_logger
from consulting_agents.schemas.session import SessionSnapshot
from consulting_agents.services.datastore.broker import SessionSubscription
from consulting_agents.services.datastore.protocol import SessionGateway

logger = get_logger(__name__)

SnapshotPredicate = Callable[[SessionSnapshot], bool]


class SessionViewClosedError(RuntimeError):
    """The view stopped following its session before a wait was satisfied."""


class SessionView:
    """Latest known snapshot of a session, kept current by its subscription.

    Usage:
        async with SessionView(gateway, session_id) as view:
            await view.wait_until(lambda s: s.is_finished, timeout=120)
            print(view.snapshot.report_final)
    """

    def __init__(self, gateway: SessionGateway, session_id: UUID) -> None:
        self._gateway = gateway
        self._session_id = session_id
        self._snapshot: SessionSnapshot | None = None
        self._subscription: SessionSubscription | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._changed = asyncio.Condition()
        self._listeners: list[asyncio.Queue[SessionSnapshot | None]] = []
        self._closed = False

    @property
    def session_id(self) -> UUID:
        return self._session_id

    @property
    def snapshot(self) -> SessionSnapshot | None:
        """Latest snapshot, or None before ``start``."""
        return self._snapshot

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> SessionSnapshot:
        """Load the current record and begin following updates.

        The subscription is attached before the read so no committed update
        can fall between them. Updates committed during the read are queued
        as well; they are already part of the loaded record and are skipped.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """
        if self._subscription is not None:
            raise RuntimeError("SessionView already started")

        self._subscription = self._gateway.subscribe(self._session_id)
        try:
            self._snapshot = await self._gateway.read_session(self._session_id)
        except Exception:
            self._subscription.close()
            self._subscription = None
            raise

        self._pump_task = asyncio.create_task(self._pump(self._subscription))
        logger.debug(
            "SESSION_VIEW_STARTED",
            session_id=str(self._session_id),
            state=self._snapshot.current_state.value,
        )
        return self._snapshot

    async def _pump(self, subscription: SessionSubscription) -> None:
        try:
            async for snapshot in subscription:
                await self._apply(snapshot)
        finally:
            await self._finish()

    async def _apply(self, snapshot: SessionSnapshot) -> None:
        # Every delivery is a full record; older writes never replace newer ones
        async with self._changed:
            if not snapshot.supersedes(self._snapshot):
                logger.debug(
                    "SESSION_VIEW_STALE_SKIPPED",
                    session_id=str(self._session_id),
                    research_counter=snapshot.research_counter,
                )
                return
            self._snapshot = snapshot
            for queue in self._listeners:
                queue.put_nowait(snapshot)
            self._changed.notify_all()

    async def _finish(self) -> None:
        async with self._changed:
            self._closed = True
            for queue in self._listeners:
                queue.put_nowait(None)
            self._changed.notify_all()

    def updates(self) -> AsyncIterator[SessionSnapshot]:
        """Iterate over snapshots applied from now on.

        The listener is registered when this is called, not on first
        iteration. Iteration ends when the view is closed.
        """
        queue: asyncio.Queue[SessionSnapshot | None] = asyncio.Queue()
        if self._closed:
            queue.put_nowait(None)
        else:
            self._listeners.append(queue)
        return self._drain(queue)

    async def _drain(
        self, queue: "asyncio.Queue[SessionSnapshot | None]"
    ) -> AsyncIterator[SessionSnapshot]:
        try:
            while True:
                snapshot = await queue.get()
                if snapshot is None:
                    return
                yield snapshot
        finally:
            if queue in self._listeners:
                self._listeners.remove(queue)

    async def wait_until(
        self, predicate: SnapshotPredicate, timeout: float | None = None
    ) -> SessionSnapshot:
        """Wait until the latest snapshot satisfies ``predicate``.

        Raises:
            TimeoutError: If ``timeout`` elapses first.
            SessionViewClosedError: If the view closes first.
        """

        def satisfied() -> bool:
            return self._snapshot is not None and predicate(self._snapshot)

        async with asyncio.timeout(timeout):
            async with self._changed:
                await self._changed.wait_for(lambda: satisfied() or self._closed)

        if not satisfied():
            raise SessionViewClosedError(
                f"SessionView for {self._session_id} closed before the condition held"
            )

        assert self._snapshot is not None
        return self._snapshot

    async def aclose(self) -> None:
        """Stop following updates and end every ``updates()`` iterator."""
        if self._closed:
            return
        self._closed = True

        if self._subscription is not None:
            self._subscription.close()
        if self._pump_task is not None:
            await self._pump_task
        else:
            await self._finish()

        logger.debug("SESSION_VIEW_CLOSED", session_id=str(self._session_id))

    async def __aenter__(self) -> "SessionView":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
