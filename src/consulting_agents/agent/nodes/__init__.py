"""Agent steps of a consultation."""

from consulting_agents.agent.nodes.reporter import synthesize_report
from consulting_agents.agent.nodes.researcher import run_research_iteration

__all__ = ["run_research_iteration", "synthesize_report"]
