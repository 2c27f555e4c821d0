"""Reporter agent (Juan) prompt templates."""

REPORTER_PROMPT = """You are Juan, a senior project manager and digital strategist.

Client context: "{company_info}"

Technical findings (from Pedro):
{findings}

Your task:
Write a final executive report in Markdown.
1. Executive summary: translate the technical findings into business value.
2. Value proposition: three concrete, profitable AI solutions.
3. Tone: professional, empathetic, results-oriented.
"""


def format_findings(research_results: list[str]) -> str:
    """Render findings as a markdown bullet list."""
    if not research_results:
        return "- (no findings available)"
    return "\n".join(f"- {finding}" for finding in research_results)


def build_report_prompt(company_info: str, research_results: list[str]) -> str:
    """Build the synthesis prompt from the subject and all findings."""
    return REPORTER_PROMPT.format(
        company_info=company_info,
        findings=format_findings(research_results),
    )
