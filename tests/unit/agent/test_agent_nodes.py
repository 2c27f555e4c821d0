"""Unit tests for the researcher and reporter agent steps."""

from unittest.mock import AsyncMock

import pytest

from consulting_agents.agent.error_text import is_error_text
from consulting_agents.agent.nodes.reporter import synthesize_report
from consulting_agents.agent.nodes.researcher import run_research_iteration
from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind
from consulting_agents.services.llm.types import GenerationResult, GroundingSource


@pytest.fixture
def mock_generator() -> AsyncMock:
    """Create a mock generation client."""
    return AsyncMock()


class TestRunResearchIteration:
    """Tests for run_research_iteration."""

    @pytest.mark.asyncio
    async def test_returns_finding_with_sources(self, mock_generator: AsyncMock):
        """Test cited sources are appended to the finding."""
        # Arrange
        mock_generator.generate.return_value = GenerationResult(
            text="Acme could automate billing.",
            model="research-model",
            duration_ms=10.0,
            sources=[GroundingSource(url="https://acme.example", title="Acme")],
        )

        # Act
        finding = await run_research_iteration(mock_generator, "Acme Corp", 1, 2)

        # Assert
        assert finding.startswith("Acme could automate billing.")
        assert "[Acme](https://acme.example)" in finding

    @pytest.mark.asyncio
    async def test_requests_web_search_with_timeout(self, mock_generator: AsyncMock):
        """Test research runs with web search and the given timeout."""
        # Arrange
        mock_generator.generate.return_value = GenerationResult(
            text="ok", model="m", duration_ms=1.0
        )

        # Act
        await run_research_iteration(mock_generator, "Acme Corp", 2, 2, timeout_seconds=30)

        # Assert
        prompt, options = mock_generator.generate.await_args.args
        assert "Acme Corp" in prompt
        assert options.web_search is True
        assert options.timeout_seconds == 30

    @pytest.mark.asyncio
    async def test_failure_returns_error_text(self, mock_generator: AsyncMock):
        """Test a failed call is converted instead of raised."""
        # Arrange
        mock_generator.generate.side_effect = GenerationError(
            GenerationErrorKind.AUTH, "invalid key"
        )

        # Act
        finding = await run_research_iteration(mock_generator, "Acme Corp", 1, 2)

        # Assert
        assert is_error_text(finding)
        assert "Authentication failed" in finding

    @pytest.mark.asyncio
    async def test_unexpected_exception_returns_error_text(self, mock_generator: AsyncMock):
        """Test non-SDK exceptions are converted too."""
        # Arrange
        mock_generator.generate.side_effect = KeyError("output")

        # Act
        finding = await run_research_iteration(mock_generator, "Acme Corp", 1, 2)

        # Assert
        assert is_error_text(finding)
        assert "Unexpected failure" in finding


class TestSynthesizeReport:
    """Tests for synthesize_report."""

    @pytest.mark.asyncio
    async def test_returns_report_text(self, mock_generator: AsyncMock):
        """Test the report is the generated text, without web search."""
        # Arrange
        mock_generator.generate.return_value = GenerationResult(
            text="# Executive report", model="m", duration_ms=1.0
        )

        # Act
        report = await synthesize_report(mock_generator, "Acme Corp", ["f1", "f2"])

        # Assert
        assert report == "# Executive report"
        prompt, options = mock_generator.generate.await_args.args
        assert options.web_search is False
        assert "f1" in prompt and "f2" in prompt

    @pytest.mark.asyncio
    async def test_failure_returns_error_text(self, mock_generator: AsyncMock):
        """Test a failed synthesis becomes an error-marked report."""
        # Arrange
        mock_generator.generate.side_effect = GenerationError(
            GenerationErrorKind.NETWORK, "connection reset"
        )

        # Act
        report = await synthesize_report(mock_generator, "Acme Corp", ["f1"])

        # Assert
        assert is_error_text(report)

    @pytest.mark.asyncio
    async def test_blank_report_returns_error_text(self, mock_generator: AsyncMock):
        """Test a blank report is never returned as content."""
        # Arrange
        mock_generator.generate.return_value = GenerationResult(
            text="  ", model="m", duration_ms=1.0
        )

        # Act
        report = await synthesize_report(mock_generator, "Acme Corp", ["f1"])

        # Assert
        assert is_error_text(report)
        assert "Empty response" in report
