"""Researcher agent (Pedro) prompt templates."""

RESEARCHER_PROMPT = """You are Pedro, a technical consultant specialised in AI and engineering.

Goal: research technical opportunities for: "{company_info}".
Research iteration: {iteration} of {total_iterations}.

Instructions:
1. Search for recent technologies, patents or digital use cases relevant to the subject.
2. Be technical, precise and analytical.
3. {focus}
4. Maximum 150 words.
"""

# One focus per iteration so successive searches do not repeat each other
ITERATION_FOCUS = [
    "Focus on the subject's current market, products and technology footprint.",
    "Focus on concrete AI and automation use cases that peers in the same sector have adopted.",
    "Focus on risks, regulation and data availability that would shape an AI roadmap.",
    "Focus on vendors, open-source tools and partners suited to the subject's scale.",
    "Focus on measurable business outcomes reported for similar initiatives.",
]


def build_research_prompt(company_info: str, iteration: int, total_iterations: int) -> str:
    """Build the prompt for one research iteration (1-based)."""
    focus = ITERATION_FOCUS[(iteration - 1) % len(ITERATION_FOCUS)]
    return RESEARCHER_PROMPT.format(
        company_info=company_info,
        iteration=iteration,
        total_iterations=total_iterations,
        focus=focus,
    )
