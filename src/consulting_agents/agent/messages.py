"""Chat messages posted by the agents during a consultation."""

from consulting_agents.schemas.session import AgentName, ChatMessage


def acknowledgement(company_info: str) -> ChatMessage:
    return ChatMessage.agent(
        AgentName.PEDRO,
        f'Understood. Starting the technical analysis for "{company_info}".',
    )


def finding(iteration: int, text: str) -> ChatMessage:
    """Pedro reports the finding of a 1-based research iteration."""
    return ChatMessage.agent(AgentName.PEDRO, f"[Finding #{iteration}]: {text}")


def handoff() -> ChatMessage:
    return ChatMessage.agent(
        AgentName.JUAN,
        "Thanks Pedro, excellent technical work. "
        "I will now structure the business strategy for the client.",
    )


def delivery() -> ChatMessage:
    return ChatMessage.agent(AgentName.JUAN, "Here is the final executive report.")
