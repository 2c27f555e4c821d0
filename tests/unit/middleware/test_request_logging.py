"""Unit tests for request logging middleware and formatters."""

import json
import logging
from uuid import uuid4

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import StreamingResponse
from httpx import ASGITransport, AsyncClient
from starlette.middleware.base import BaseHTTPMiddleware

from consulting_agents.middleware.logging import (
    REQUEST_ID_HEADER,
    ColoredFormatter,
    JsonFormatter,
    RequestLoggingMiddleware,
)


@pytest.fixture
def app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/sessions/{session_id}")
    async def read(session_id: str, request: Request):
        return {"id": session_id, "request_id": request.state.request_id}

    @app.get("/sessions/{session_id}/stream")
    async def stream(session_id: str):
        async def events():
            for n in range(3):
                yield f"data: {n}\n\n"

        return StreamingResponse(events(), media_type="text/event-stream")

    return app


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("tests", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestLoggingMiddleware:
    """Tests for RequestLoggingMiddleware."""

    @pytest.mark.asyncio
    async def test_incoming_request_id_is_echoed(self, app: FastAPI):
        """Test a caller-supplied request id comes back on the response."""
        # Act
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/sessions/x", headers={REQUEST_ID_HEADER: "req-42"})

        # Assert
        assert response.headers[REQUEST_ID_HEADER] == "req-42"
        assert response.json()["request_id"] == "req-42"

    @pytest.mark.asyncio
    async def test_streaming_response_passes_through(self, app: FastAPI, caplog):
        """Test event streams keep every chunk and still get the request id header."""
        # Act
        with caplog.at_level(logging.INFO, logger="consulting_agents.middleware.logging"):
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                response = await client.get(f"/sessions/{uuid4()}/stream")

        # Assert
        assert response.status_code == 200
        assert response.text == "data: 0\n\ndata: 1\n\ndata: 2\n\n"
        assert response.headers[REQUEST_ID_HEADER]
        assert caplog.records[-1].status_code == 200

    def test_is_plain_asgi(self):
        """Test the middleware is a plain ASGI callable, not a BaseHTTPMiddleware."""
        assert not issubclass(RequestLoggingMiddleware, BaseHTTPMiddleware)

    @pytest.mark.asyncio
    async def test_session_id_attached_to_record(self, app: FastAPI, caplog):
        """Test session routes log the session id from the path."""
        # Arrange
        session_id = str(uuid4())

        # Act
        with caplog.at_level(logging.INFO, logger="consulting_agents.middleware.logging"):
            async with AsyncClient(
                transport=ASGITransport(app=app), base_url="http://test"
            ) as client:
                response = await client.get(f"/sessions/{session_id}")

        # Assert
        assert response.status_code == 200
        assert response.headers[REQUEST_ID_HEADER]
        record = caplog.records[-1]
        assert record.session_id == session_id
        assert record.status_code == 200


class TestFormatters:
    """Tests for the log formatters."""

    def test_json_formatter_promotes_extra_fields(self):
        """Test known extra attributes become top-level JSON keys."""
        # Act
        line = JsonFormatter().format(_record(request_id="abc", status_code=201, other="x"))

        # Assert
        payload = json.loads(line)
        assert payload["message"] == "hello"
        assert payload["request_id"] == "abc"
        assert payload["status_code"] == 201
        assert "other" not in payload

    def test_colored_formatter_leaves_record_untouched(self):
        """Test coloring does not leak escape codes into the shared record."""
        # Arrange
        record = _record()

        # Act
        line = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)

        # Assert
        assert "\033[32m" in line
        assert record.levelname == "INFO"
