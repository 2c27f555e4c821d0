"""Structured logging utilities for workflow and generation tracing."""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from consulting_agents.core.config import get_settings
from consulting_agents.core.tracing import log_trace_event

_CONTEXT_KEYS = ("session_id", "agent", "iteration")

# Longest preview the generation helpers produce
_MAX_FIELD_LENGTH = 200


@dataclass(frozen=True)
class LogContext:
    """Correlation fields carried by every line of one consultation run."""

    session_id: str | None = None
    agent: str | None = None
    iteration: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def format_prefix(self) -> str:
        parts = []
        if self.session_id:
            parts.append(f"session={self.session_id[:8]}")
        if self.agent:
            parts.append(f"agent={self.agent}")
        if self.iteration is not None:
            parts.append(f"iteration={self.iteration}")
        parts.extend(f"{key}={value}" for key, value in self.extra.items())
        return " | ".join(parts)


def truncate(text: str | None, max_length: int = 100) -> str:
    """Shorten text for a log line, marking the cut with an ellipsis."""
    if text is None:
        return "<none>"
    return text if len(text) <= max_length else text[:max_length] + "..."


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{truncate(value, _MAX_FIELD_LENGTH)}"'
    if isinstance(value, list | tuple) and len(value) > 3:
        return f"[{value[0]}, ... +{len(value) - 1} more]"
    if isinstance(value, dict):
        return f"{{{len(value)} keys}}"
    return str(value)


def format_fields(fields: dict[str, Any]) -> str:
    """Render event fields as ``key=value`` pairs."""
    return " | ".join(f"{key}={_format_value(value)}" for key, value in fields.items())


class StructuredLogger:
    """Logger that prefixes run context and appends event fields.

    Messages are UPPER_SNAKE event names such as ``RESEARCH_ITERATION_START``;
    keyword arguments become the event's fields.
    """

    def __init__(self, name: str, context: LogContext | None = None):
        self._logger = logging.getLogger(name)
        self._context = context or LogContext()

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, event: str, fields: dict[str, Any], exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        parts = [self._context.format_prefix(), event]
        if fields:
            parts.append(format_fields(fields))
        self._logger.log(level, " | ".join(p for p in parts if p), exc_info=exc_info)

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields)

    def exception(self, event: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, event, fields, exc_info=True)

    def with_context(self, **fields: Any) -> "StructuredLogger":
        """Derive a logger whose context adds or overrides the given fields.

        ``session_id``, ``agent`` and ``iteration`` fill the named slots; any
        other keyword is kept in ``extra``.
        """
        known = {k: v for k, v in fields.items() if k in _CONTEXT_KEYS}
        extra = {k: v for k, v in fields.items() if k not in _CONTEXT_KEYS}
        context = replace(self._context, **known, extra={**self._context.extra, **extra})
        return StructuredLogger(self._logger.name, context)


def get_logger(name: str, context: LogContext | None = None) -> StructuredLogger:
    return StructuredLogger(name, context)


def _preview_length(short: int, long: int) -> int:
    return long if get_settings().debug else short


def log_llm_request(
    logger: StructuredLogger,
    model: str,
    mode: str,
    prompt: str,
    web_search: bool,
    timeout_seconds: float,
) -> None:
    logger.info(
        "LLM_REQUEST",
        model=model,
        mode=mode,
        web_search=web_search,
        prompt_len=len(prompt),
        prompt_preview=truncate(prompt, _preview_length(50, 150)),
        timeout_s=timeout_seconds,
    )


def log_llm_response(
    logger: StructuredLogger,
    model: str,
    duration_ms: float,
    content: str,
    sources: int = 0,
) -> None:
    logger.info(
        "LLM_RESPONSE",
        model=model,
        duration_ms=round(duration_ms, 1),
        content_len=len(content),
        content_preview=truncate(content, _preview_length(80, 200)),
        sources=sources,
    )


def log_llm_error(
    logger: StructuredLogger,
    model: str,
    error: Exception,
    kind: str,
    will_retry: bool = False,
) -> None:
    """Log a failed generation attempt with its classified kind."""
    fields = {
        "model": model,
        "kind": kind,
        "error_type": type(error).__name__,
        "error": str(error)[:200],
        "will_retry": will_retry,
    }
    if will_retry:
        logger.warning("LLM_ERROR", **fields)
    else:
        logger.error("LLM_ERROR", **fields)


def log_state_transition(logger: StructuredLogger, from_state: str, to_state: str) -> None:
    """Record a workflow state change in the log and on the active trace."""
    logger.info("SESSION_STATE_TRANSITION", from_state=from_state, to_state=to_state)
    log_trace_event("state_transition", {"from_state": from_state, "to_state": to_state})


def log_agent_transition(
    logger: StructuredLogger,
    from_agent: str | None,
    to_agent: str,
    reason: str | None = None,
) -> None:
    """Record which agent now holds the conversation.

    ``from_agent`` is None when the first agent takes over.
    """
    event = "AGENT_HANDOFF" if from_agent else "AGENT_START"
    fields: dict[str, Any] = {"to_agent": to_agent}
    if from_agent:
        fields["from_agent"] = from_agent
    if reason:
        fields["reason"] = reason
    logger.info(event, **fields)
    log_trace_event("agent_transition", {
        "from_agent": from_agent or "",
        "to_agent": to_agent,
        "reason": reason or "",
    })


@asynccontextmanager
async def async_timed_operation(
    logger: StructuredLogger, operation: str, **fields: Any
) -> AsyncIterator[dict[str, Any]]:
    """Time the enclosed block and log ``TIMED:<operation>`` when it exits.

    The yielded dict may be filled with extra fields to report. Failures are
    logged at ERROR and re-raised.
    """
    outcome: dict[str, Any] = {}
    start = time.perf_counter()
    success = False
    try:
        yield outcome
        success = True
    finally:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 1)
        emit = logger.info if success else logger.error
        emit(f"TIMED:{operation}", duration_ms=elapsed_ms, success=success, **fields, **outcome)
