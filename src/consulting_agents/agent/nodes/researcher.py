"""Researcher agent (Pedro) - one web-grounded research iteration."""

from consulting_agents.agent.error_text import render_generation_error
from consulting_agents.agent.prompts.researcher import build_research_prompt
from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind
from consulting_agents.core.logging_utils import get_logger, truncate
from consulting_agents.core.tracing import trace_agent
from consulting_agents.services.llm.client import classify_error
from consulting_agents.services.llm.types import GenerationOptions, TextGenerator

logger = get_logger(__name__)


@trace_agent(name="pedro", mode="research")
async def run_research_iteration(
    generator: TextGenerator,
    company_info: str,
    iteration: int,
    total_iterations: int,
    timeout_seconds: float | None = None,
) -> str:
    """Run one research iteration and return its finding.

    Never raises for generation failures: they come back as error-marked text
    so the research loop always completes.

    Args:
        generator: Generation client.
        company_info: Subject of the consultation.
        iteration: 1-based iteration number.
        total_iterations: Configured loop bound.
        timeout_seconds: Per-call timeout override.

    Returns:
        Finding text (with cited sources appended) or error-marked text.
    """
    node_logger = logger.with_context(agent="Pedro", iteration=iteration)
    prompt = build_research_prompt(company_info, iteration, total_iterations)
    options = GenerationOptions(web_search=True, timeout_seconds=timeout_seconds)

    try:
        result = await generator.generate(prompt, options)
    except Exception as e:
        error = classify_error(e)
        node_logger.warning(
            "RESEARCH_ITERATION_FAILED",
            kind=error.kind.value,
            error=str(e)[:200],
        )
        return render_generation_error(error)

    if not result.text.strip():
        return render_generation_error(
            GenerationError(GenerationErrorKind.EMPTY_RESPONSE, "Empty finding", result.model)
        )

    node_logger.info(
        "RESEARCH_ITERATION_DONE",
        sources=len(result.sources),
        preview=truncate(result.text, 60),
    )
    return result.text_with_sources()
