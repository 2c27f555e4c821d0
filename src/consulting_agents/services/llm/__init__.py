"""Generation service package."""

from consulting_agents.services.llm.client import GenerationClient, classify_error
from consulting_agents.services.llm.types import (
    GenerationMode,
    GenerationOptions,
    GenerationResult,
    GroundingSource,
    TextGenerator,
)

__all__ = [
    "GenerationClient",
    "GenerationMode",
    "GenerationOptions",
    "GenerationResult",
    "GroundingSource",
    "TextGenerator",
    "classify_error",
]
