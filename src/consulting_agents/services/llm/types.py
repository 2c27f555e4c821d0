"""Generation service type definitions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol


class GenerationMode(str, Enum):
    """How a prompt is answered."""

    RESEARCH = "research"  # web-search augmented
    SYNTHESIS = "synthesis"  # plain completion


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call options for the generation client."""

    web_search: bool = False
    model: str | None = None
    timeout_seconds: float | None = None

    @property
    def mode(self) -> GenerationMode:
        return GenerationMode.RESEARCH if self.web_search else GenerationMode.SYNTHESIS


@dataclass(frozen=True)
class GroundingSource:
    """A web page cited by a search-augmented response."""

    url: str
    title: str | None = None

    def to_markdown(self) -> str:
        return f"[{self.title or self.url}]({self.url})"


@dataclass
class GenerationResult:
    """Response from the generation service."""

    text: str
    model: str
    duration_ms: float
    sources: list[GroundingSource] = field(default_factory=list)

    def text_with_sources(self) -> str:
        """Text followed by a markdown list of cited sources, if any."""
        if not self.sources:
            return self.text
        lines = [f"- {source.to_markdown()}" for source in self.sources]
        return f"{self.text}\n\n**Sources:**\n" + "\n".join(lines)


class TextGenerator(Protocol):
    """Anything that answers prompts like GenerationClient."""

    async def generate(
        self, prompt: str, options: GenerationOptions | None = None
    ) -> GenerationResult:
        ...
