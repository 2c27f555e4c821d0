"""Unit tests for structured logging helpers."""

import logging
from types import SimpleNamespace

import pytest

from consulting_agents.core import logging_utils
from consulting_agents.core.logging_utils import (
    async_timed_operation,
    format_fields,
    get_logger,
    log_agent_transition,
    log_llm_request,
    log_state_transition,
    truncate,
)


class TestFormatting:
    """Tests for log formatting helpers."""

    def test_truncate(self):
        """Test long text is cut with an ellipsis."""
        assert truncate("abcdef", 3) == "abc..."
        assert truncate("abc", 3) == "abc"
        assert truncate(None) == "<none>"

    def test_format_fields(self):
        """Test key=value rendering per value type."""
        # Act
        text = format_fields(
            {"name": "Acme", "count": 2, "fields": ["a", "b"], "results": [1, 2, 3, 4]}
        )

        # Assert
        assert text == (
            "name=\"Acme\" | count=2 | fields=['a', 'b'] | results=[1, ... +3 more]"
        )


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_context_prefix(self, caplog):
        """Test session context prefixes every message."""
        # Arrange
        logger = get_logger("tests.structured").with_context(session_id="1234567890abcdef")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.structured"):
            logger.info("CONSULTATION_START", iterations=2)

        # Assert
        assert "session=12345678 | CONSULTATION_START | iterations=2" in caplog.text

    def test_state_transition_event(self, caplog):
        """Test state transitions are logged with both states."""
        # Arrange
        logger = get_logger("tests.transitions")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.transitions"):
            log_state_transition(logger, "WAITING_FOR_INFO", "START_RESEARCH")

        # Assert
        assert "SESSION_STATE_TRANSITION" in caplog.text
        assert 'to_state="START_RESEARCH"' in caplog.text

    @pytest.mark.asyncio
    async def test_timed_operation_logs_failure(self, caplog):
        """Test a failing block is logged at ERROR with success=False."""
        # Arrange
        logger = get_logger("tests.timed")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.timed"):
            with pytest.raises(RuntimeError):
                async with async_timed_operation(logger, "consultation"):
                    raise RuntimeError("boom")

        # Assert
        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert "TIMED:consultation" in record.getMessage()
        assert "success=False" in record.getMessage()

    def test_with_context_layers_agent_and_iteration(self, caplog):
        """Test derived loggers keep the session and add agent fields."""
        # Arrange
        base = get_logger("tests.layers").with_context(session_id="abcdef0123456789")
        logger = base.with_context(agent="Pedro", iteration=1, mode="research")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.layers"):
            logger.info("RESEARCH_ITERATION_START")

        # Assert
        assert (
            "session=abcdef01 | agent=Pedro | iteration=1 | mode=research | RESEARCH_ITERATION_START"
            in caplog.text
        )

    def test_agent_handoff_event(self, caplog):
        """Test a handoff names both agents."""
        # Arrange
        logger = get_logger("tests.handoff")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.handoff"):
            log_agent_transition(logger, "Pedro", "Juan", reason="research complete")

        # Assert
        assert "AGENT_HANDOFF" in caplog.text
        assert 'from_agent="Pedro"' in caplog.text


class TestGenerationLogging:
    """Tests for generation request logging."""

    @pytest.mark.parametrize(("debug", "preview_len"), [(False, 50), (True, 150)])
    def test_prompt_preview_length_follows_debug(self, monkeypatch, caplog, debug, preview_len):
        """Test prompt previews are longer in debug mode."""
        # Arrange
        monkeypatch.setattr(logging_utils, "get_settings", lambda: SimpleNamespace(debug=debug))
        logger = get_logger("tests.generation")

        # Act
        with caplog.at_level(logging.INFO, logger="tests.generation"):
            log_llm_request(logger, "m", "research", "x" * 500, True, 60.0)

        # Assert
        assert f'prompt_preview="{"x" * preview_len}..."' in caplog.text
        assert "prompt_len=500" in caplog.text
