"""Consulting session endpoints.

Provides session creation, consultation submission and live progress.

Key Features:
- Consultations run in the background (fire-and-observe)
- One run per session; a busy session answers 409
- SSE streaming of every persisted session update
"""

import json
from collections.abc import AsyncGenerator
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import StreamingResponse

from consulting_agents.agent.orchestrator import SessionOrchestrator
from consulting_agents.core.dependencies import (
    get_orchestrator,
    get_session_gateway,
    get_session_service,
)
from consulting_agents.core.exceptions import AppException, SessionBusyError
from consulting_agents.core.logging_utils import get_logger, truncate
from consulting_agents.models.consulting_session import WorkflowState
from consulting_agents.schemas.common import ErrorResponse
from consulting_agents.schemas.session import (
    CreateSessionRequest,
    SendMessageRequest,
    SendMessageResponse,
    SessionSnapshot,
)
from consulting_agents.services.datastore.protocol import SessionGateway
from consulting_agents.services.realtime import SessionView
from consulting_agents.services.session_service import SessionService

router = APIRouter(
    responses={
        status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    }
)
logger = get_logger(__name__)


def _sse(event_type: str, snapshot: SessionSnapshot) -> str:
    payload = {
        "eventType": event_type,
        "session": snapshot.model_dump(mode="json"),
    }
    return f"data: {json.dumps(payload)}\n\n"


async def _run_consultation(
    orchestrator: SessionOrchestrator,
    session_id: UUID,
    content: str,
) -> None:
    """Background entry point for a run claimed by the request.

    Failures end here since no client awaits them.
    """
    try:
        await orchestrator.run_consultation(session_id, content, claimed=True)
    except AppException as e:
        logger.error(
            "CONSULTATION_FAILED",
            session_id=str(session_id),
            code=e.code,
            error=e.message[:200],
        )
    except Exception:
        logger.exception("CONSULTATION_CRASHED", session_id=str(session_id))


@router.post("", response_model=SessionSnapshot, status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest | None = None,
    service: SessionService = Depends(get_session_service),
) -> SessionSnapshot:
    """Open a session waiting for the consultation subject."""
    return await service.create(request.user_id if request else None)


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(
    session_id: UUID,
    service: SessionService = Depends(get_session_service),
) -> SessionSnapshot:
    """Get the full session record."""
    return await service.get(session_id)


@router.post(
    "/{session_id}/messages",
    response_model=SendMessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={status.HTTP_409_CONFLICT: {"model": ErrorResponse}},
)
async def send_message(
    session_id: UUID,
    request: SendMessageRequest,
    background_tasks: BackgroundTasks,
    service: SessionService = Depends(get_session_service),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> SendMessageResponse:
    """Submit the consultation subject and start the run.

    Progress is observed through the session stream, not this response.
    """
    session = await service.get(session_id)
    if session.current_state is not WorkflowState.WAITING_FOR_INFO:
        raise SessionBusyError(str(session_id), session.current_state.value)
    # Held from here until the background run ends
    orchestrator.claim(session_id)

    logger.info(
        "CONSULTATION_SUBMITTED",
        session_id=str(session_id),
        content=truncate(request.content, 80),
    )
    background_tasks.add_task(_run_consultation, orchestrator, session_id, request.content)
    return SendMessageResponse(session_id=session_id, accepted=True)


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: UUID,
    gateway: SessionGateway = Depends(get_session_gateway),
) -> StreamingResponse:
    """Stream session updates via Server-Sent Events.

    The current record is sent first, then one event per persisted update.
    The stream closes once the session is FINISHED.

    Event Format:
    ```
    data: {"eventType": "session_snapshot|session_update", "session": {...}}
    ```
    """
    view = SessionView(gateway, session_id)
    await view.start()
    updates = view.updates()

    logger.info("SESSION_STREAM_STARTED", session_id=str(session_id))

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events from the session view."""
        sent = 0
        try:
            snapshot = view.snapshot
            assert snapshot is not None
            yield _sse("session_snapshot", snapshot)

            if not snapshot.is_finished:
                async for snapshot in updates:
                    yield _sse("session_update", snapshot)
                    sent += 1
                    if snapshot.is_finished:
                        break
        finally:
            await view.aclose()
            logger.info(
                "SESSION_STREAM_COMPLETED",
                session_id=str(session_id),
                updates=sent,
            )

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
