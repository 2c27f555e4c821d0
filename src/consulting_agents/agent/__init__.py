"""Consultation agents and the session orchestrator."""

from consulting_agents.agent.orchestrator import OrchestrationConfig, SessionOrchestrator

__all__ = ["OrchestrationConfig", "SessionOrchestrator"]
