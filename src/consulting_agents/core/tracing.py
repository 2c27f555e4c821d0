"""MLflow tracing for consultation runs and agent calls."""

import json
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import mlflow
from mlflow.entities import SpanEvent, SpanType

from consulting_agents.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

AttributeValue = str | bool | int | float


def _scalar(value: Any) -> AttributeValue:
    # Span event attributes must be scalars
    if isinstance(value, AttributeValue):
        return value
    if isinstance(value, list | tuple):
        return json.dumps([str(item) for item in value])
    return str(value)


def log_trace_event(event_name: str, attributes: dict[str, Any] | None = None) -> None:
    """Attach an event to the active span; no-op outside a trace."""
    span = mlflow.get_current_active_span()
    if span is None:
        return
    safe = {key: _scalar(value) for key, value in (attributes or {}).items()}
    span.add_event(SpanEvent(name=event_name, attributes=safe))  # type: ignore[abstract]


def setup_tracing(settings: Settings | None = None) -> None:
    """Point MLflow at the configured experiment, or turn tracing off.

    Failures are logged and leave the service running without traces.
    """
    settings = settings or get_settings()

    if not settings.tracing_enabled:
        mlflow.tracing.disable()
        logger.info("MLflow tracing disabled by configuration")
        return

    try:
        mlflow.config.enable_async_logging(True)  # type: ignore[no-untyped-call]
        mlflow.set_tracking_uri(settings.mlflow_tracking_uri)
        mlflow.set_experiment(settings.mlflow_experiment_name)
        mlflow.tracing.enable()
    except Exception as e:
        logger.warning("Failed to configure MLflow tracing: %s", e)
        return

    try:
        import mlflow.openai

        mlflow.openai.autolog()
    except Exception as e:
        logger.warning("OpenAI autolog unavailable, generation calls are not traced: %s", e)

    logger.info(
        "MLflow tracing enabled: uri=%s experiment=%s",
        settings.mlflow_tracking_uri,
        settings.mlflow_experiment_name,
    )


def trace_agent(
    name: str,
    mode: str | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Run the decorated coroutine inside an AGENT span named after the agent.

    Args:
        name: Agent span name ("pedro", "juan").
        mode: Generation mode the agent uses ("research" or "synthesis").
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        @mlflow.trace(name=name, span_type=SpanType.AGENT)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            span = mlflow.get_current_active_span()
            if span is not None:
                span.set_attributes({"agent.name": name, "agent.mode": mode or "unknown"})
            return await func(*args, **kwargs)

        return wrapper

    return decorator
