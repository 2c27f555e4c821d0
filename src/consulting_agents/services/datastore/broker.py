"""In-process change notifications for session records.

Each subscriber owns an unbounded queue. Publishing is synchronous, so the
order in which the gateway publishes committed records is exactly the order
subscribers receive them.
"""

import asyncio
import logging
from collections import defaultdict
from types import TracebackType
from uuid import UUID

from consulting_agents.schemas.session import SessionSnapshot

logger = logging.getLogger(__name__)


class SessionSubscription:
    """Async iterator over committed snapshots of one session."""

    def __init__(self, broker: "SessionChangeBroker", session_id: UUID) -> None:
        self._broker = broker
        self._session_id = session_id
        self._queue: asyncio.Queue[SessionSnapshot | None] = asyncio.Queue()
        self._closed = False

    @property
    def session_id(self) -> UUID:
        return self._session_id

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Snapshots delivered but not yet consumed."""
        return self._queue.qsize()

    def deliver(self, snapshot: SessionSnapshot) -> None:
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def close(self) -> None:
        """Detach from the broker and end iteration after queued snapshots."""
        if self._closed:
            return
        self._closed = True
        self._broker.unsubscribe(self)
        self._queue.put_nowait(None)

    def __aiter__(self) -> "SessionSubscription":
        return self

    async def __anext__(self) -> SessionSnapshot:
        item = await self._queue.get()
        if item is None:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "SessionSubscription":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class SessionChangeBroker:
    """Fan-out of committed session records to subscribers by session id."""

    def __init__(self) -> None:
        self._subscribers: dict[UUID, list[SessionSubscription]] = defaultdict(list)

    def subscribe(self, session_id: UUID) -> SessionSubscription:
        subscription = SessionSubscription(self, session_id)
        self._subscribers[session_id].append(subscription)
        logger.debug(
            "SUBSCRIBED session=%s subscribers=%d",
            str(session_id)[:8],
            len(self._subscribers[session_id]),
        )
        return subscription

    def unsubscribe(self, subscription: SessionSubscription) -> None:
        subscribers = self._subscribers.get(subscription.session_id)
        if not subscribers:
            return
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            del self._subscribers[subscription.session_id]

    def publish(self, snapshot: SessionSnapshot) -> int:
        """Deliver a committed record to every subscriber of its session.

        Returns:
            Number of subscribers notified.
        """
        subscribers = list(self._subscribers.get(snapshot.id, ()))
        for subscription in subscribers:
            subscription.deliver(snapshot)
        return len(subscribers)

    def subscriber_count(self, session_id: UUID) -> int:
        return len(self._subscribers.get(session_id, ()))

    def close(self) -> None:
        """End every open subscription (app shutdown)."""
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                subscription.close()
        self._subscribers.clear()
