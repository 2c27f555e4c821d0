"""Reporter agent (Juan) - executive report synthesis."""

from consulting_agents.agent.error_text import render_generation_error
from consulting_agents.agent.prompts.reporter import build_report_prompt
from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind
from consulting_agents.core.logging_utils import get_logger
from consulting_agents.core.tracing import trace_agent
from consulting_agents.services.llm.client import classify_error
from consulting_agents.services.llm.types import GenerationOptions, TextGenerator

logger = get_logger(__name__).with_context(agent="Juan")


@trace_agent(name="juan", mode="synthesis")
async def synthesize_report(
    generator: TextGenerator,
    company_info: str,
    research_results: list[str],
    timeout_seconds: float | None = None,
) -> str:
    """Write the markdown executive report from all findings.

    A failed generation call yields an error-marked report instead of raising.
    """
    prompt = build_report_prompt(company_info, research_results)
    options = GenerationOptions(web_search=False, timeout_seconds=timeout_seconds)

    try:
        result = await generator.generate(prompt, options)
    except Exception as e:
        error = classify_error(e)
        logger.warning("REPORT_SYNTHESIS_FAILED", kind=error.kind.value, error=str(e)[:200])
        return render_generation_error(error)

    if not result.text.strip():
        return render_generation_error(
            GenerationError(GenerationErrorKind.EMPTY_RESPONSE, "Empty report", result.model)
        )

    logger.info("REPORT_SYNTHESIS_DONE", report_len=len(result.text))
    return result.text
