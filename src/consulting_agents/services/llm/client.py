"""Generation client using the OpenAI SDK.

Research mode calls the Responses API with the web search tool and collects
URL citations; synthesis mode is a plain chat completion. Every failure is
raised as a tagged ``GenerationError`` so callers switch on ``kind`` rather
than on message text.
"""

import asyncio
import random
import time
from collections.abc import Mapping
from typing import Any

import mlflow
import openai
from mlflow.entities import SpanType
from openai import AsyncOpenAI

from consulting_agents.core.config import Settings
from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind
from consulting_agents.core.logging_utils import (
    get_logger,
    log_llm_error,
    log_llm_request,
    log_llm_response,
)
from consulting_agents.services.llm.types import (
    GenerationOptions,
    GenerationResult,
    GroundingSource,
)

logger = get_logger(__name__)

WEB_SEARCH_TOOL = {"type": "web_search_preview"}


def _find_service_disabled(body: object) -> dict[str, Any] | None:
    """Look for a SERVICE_DISABLED reason in a structured error body.

    Providers report this as ``{"details": [{"reason": "SERVICE_DISABLED",
    "metadata": {"activationUrl": ...}}]}`` or with ``code`` set to
    ``service_disabled``.
    """
    if not isinstance(body, Mapping):
        return None

    code = body.get("code") or body.get("status")
    if isinstance(code, str) and code.lower() == "service_disabled":
        return {"activation_url": body.get("activation_url")}

    for detail in body.get("details") or []:
        if not isinstance(detail, Mapping):
            continue
        if str(detail.get("reason", "")).upper() == "SERVICE_DISABLED":
            metadata = detail.get("metadata") or {}
            return {
                "activation_url": metadata.get("activationUrl") or metadata.get("activation_url"),
                "service": metadata.get("service"),
            }

    nested = body.get("error")
    if isinstance(nested, Mapping):
        return _find_service_disabled(nested)
    return None


def is_transient_rate_limit(error: BaseException) -> bool:
    """A 429 that is worth retrying (not an exhausted quota)."""
    return isinstance(error, openai.RateLimitError) and error.code != "insufficient_quota"


def classify_error(error: BaseException, model: str | None = None) -> GenerationError:
    """Convert an SDK or runtime failure into a tagged GenerationError."""
    if isinstance(error, GenerationError):
        return error

    if isinstance(error, TimeoutError | openai.APITimeoutError):
        return GenerationError(GenerationErrorKind.TIMEOUT, "Generation request timed out", model)

    if isinstance(error, openai.APIConnectionError):
        return GenerationError(
            GenerationErrorKind.NETWORK,
            f"Could not reach the generation service: {error}",
            model,
        )

    if isinstance(error, openai.APIStatusError):
        details: dict[str, Any] = {"status_code": error.status_code}
        if error.code:
            details["code"] = error.code

        disabled = _find_service_disabled(error.body)
        if disabled is not None:
            details.update({k: v for k, v in disabled.items() if v})
            return GenerationError(
                GenerationErrorKind.SERVICE_DISABLED,
                "The generation service is not enabled for this project",
                model,
                details,
            )

        if isinstance(error, openai.AuthenticationError | openai.PermissionDeniedError):
            return GenerationError(GenerationErrorKind.AUTH, error.message, model, details)

        if isinstance(error, openai.RateLimitError):
            return GenerationError(GenerationErrorKind.QUOTA, error.message, model, details)

        return GenerationError(GenerationErrorKind.UNKNOWN, error.message, model, details)

    return GenerationError(
        GenerationErrorKind.UNKNOWN,
        f"{type(error).__name__}: {error}",
        model,
    )


def _extract_sources(response: Any) -> list[GroundingSource]:
    """Collect url_citation annotations from a Responses API result."""
    sources: list[GroundingSource] = []
    seen: set[str] = set()
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for part in getattr(item, "content", None) or []:
            for annotation in getattr(part, "annotations", None) or []:
                if getattr(annotation, "type", None) != "url_citation":
                    continue
                url = annotation.url
                if url in seen:
                    continue
                seen.add(url)
                sources.append(GroundingSource(url=url, title=getattr(annotation, "title", None)))
    return sources


class GenerationClient:
    """Text generation with optional web-search augmentation."""

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        """Initialize the generation client.

        Args:
            settings: Application settings (models, timeouts, retry policy).
            client: Pre-built SDK client. Built from settings when omitted;
                left unset when no API key is configured, in which case every
                call fails with an AUTH error.
        """
        self._settings = settings
        self._client = client

        if self._client is None and settings.openai_api_key:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
            )

        logger.info(
            "GENERATION_CLIENT_INIT",
            configured=self._client is not None,
            research_model=settings.research_model,
            report_model=settings.report_model,
        )

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    def _calculate_delay(self, attempt: int) -> float:
        delay = self._settings.llm_base_delay_seconds * (2**attempt)
        return min(delay, self._settings.llm_max_delay_seconds) + random.uniform(0, 1)

    async def generate(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> GenerationResult:
        """Generate text for a prompt.

        Transient rate limits are retried with exponential backoff. Each
        attempt is bounded by the configured timeout.

        Args:
            prompt: Free-text prompt.
            options: Web search flag, model and timeout overrides.

        Returns:
            GenerationResult with text and any cited sources.

        Raises:
            GenerationError: On any failure, tagged with its kind.
        """
        options = options or GenerationOptions()
        default_model = (
            self._settings.research_model if options.web_search else self._settings.report_model
        )
        model = options.model or default_model
        timeout = options.timeout_seconds or self._settings.generation_timeout_seconds

        if self._client is None:
            raise GenerationError(
                GenerationErrorKind.AUTH,
                "No API key configured for the generation service (OPENAI_API_KEY)",
                model,
            )

        log_llm_request(
            logger,
            model=model,
            mode=options.mode.value,
            prompt=prompt,
            web_search=options.web_search,
            timeout_seconds=timeout,
        )

        max_retries = self._settings.llm_max_retries
        for attempt in range(max_retries + 1):
            try:
                return await self._generate_once(prompt, options, model, timeout)
            except Exception as e:
                retry = is_transient_rate_limit(e) and attempt < max_retries
                error = classify_error(e, model)
                log_llm_error(logger, model=model, error=e, kind=error.kind.value, will_retry=retry)
                if not retry:
                    raise error from e

                delay = self._calculate_delay(attempt)
                logger.warning(
                    "LLM_RATE_LIMIT_RETRY",
                    model=model,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay_seconds=round(delay, 2),
                )
                await asyncio.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise GenerationError(GenerationErrorKind.UNKNOWN, "Generation retries exhausted", model)

    async def _generate_once(
        self,
        prompt: str,
        options: GenerationOptions,
        model: str,
        timeout: float,
    ) -> GenerationResult:
        assert self._client is not None

        with mlflow.start_span(
            name=f"generate_{options.mode.value}", span_type=SpanType.CHAT_MODEL
        ) as span:
            span.set_attributes({
                "llm.model": model,
                "llm.web_search": options.web_search,
                "llm.prompt_len": len(prompt),
            })
            start_time = time.perf_counter()

            async with asyncio.timeout(timeout):
                if options.web_search:
                    response = await self._client.responses.create(
                        model=model,
                        input=prompt,
                        tools=[WEB_SEARCH_TOOL],
                    )
                    text = response.output_text or ""
                    sources = _extract_sources(response)
                else:
                    completion = await self._client.chat.completions.create(
                        model=model,
                        messages=[{"role": "user", "content": prompt}],
                    )
                    text = ""
                    if completion.choices:
                        text = completion.choices[0].message.content or ""
                    sources = []

            duration_ms = (time.perf_counter() - start_time) * 1000
            span.set_attributes({
                "llm.duration_ms": duration_ms,
                "llm.sources": len(sources),
            })

        if not text.strip():
            raise GenerationError(
                GenerationErrorKind.EMPTY_RESPONSE,
                "The generation service returned no text",
                model,
            )

        log_llm_response(
            logger,
            model=model,
            duration_ms=duration_ms,
            content=text,
            sources=len(sources),
        )
        return GenerationResult(text=text, model=model, duration_ms=duration_ms, sources=sources)

    async def close(self) -> None:
        """Close the underlying HTTP client.

        Must be called before the event loop closes to avoid
        'Event loop is closed' errors during cleanup.
        """
        if self._client is not None:
            await self._client.close()
