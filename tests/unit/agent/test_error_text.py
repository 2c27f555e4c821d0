"""Unit tests for generation error rendering."""

import pytest

from consulting_agents.agent.error_text import ERROR_MARKER, is_error_text, render_generation_error
from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind


class TestRenderGenerationError:
    """Tests for render_generation_error."""

    @pytest.mark.parametrize("kind", list(GenerationErrorKind))
    def test_every_kind_starts_with_marker(self, kind):
        """Test all failure kinds render as recognisable error text."""
        # Act
        text = render_generation_error(GenerationError(kind, "boom"))

        # Assert
        assert text.startswith(ERROR_MARKER)
        assert is_error_text(text)

    def test_auth_hint_mentions_api_key(self):
        """Test AUTH failures point at the key configuration."""
        # Act
        text = render_generation_error(GenerationError(GenerationErrorKind.AUTH, "invalid key"))

        # Assert
        assert "API key" in text
        assert "invalid key" in text

    def test_quota_hint_mentions_billing(self):
        """Test QUOTA failures point at plan and billing."""
        # Act
        text = render_generation_error(GenerationError(GenerationErrorKind.QUOTA, "429"))

        # Assert
        assert "billing" in text

    def test_service_disabled_includes_activation_link(self):
        """Test the activation URL is offered when known."""
        # Arrange
        error = GenerationError(
            GenerationErrorKind.SERVICE_DISABLED,
            "disabled",
            details={"activation_url": "https://console.example.com/enable"},
        )

        # Act
        text = render_generation_error(error)

        # Assert
        assert "https://console.example.com/enable" in text

    def test_timeout_omits_details(self):
        """Test timeouts render only the hint."""
        # Act
        text = render_generation_error(
            GenerationError(GenerationErrorKind.TIMEOUT, "internal timer detail")
        )

        # Assert
        assert "internal timer detail" not in text
        assert "Timed out" in text


class TestIsErrorText:
    """Tests for is_error_text."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("[ERROR] Network failure: ...", True),
            ("  [ERROR] leading whitespace", True),
            ("Acme sells anvils.", False),
            ("Found an [ERROR] tag mid-text", False),
            ("", False),
        ],
    )
    def test_detects_marker_prefix(self, text, expected):
        """Test only text starting with the marker counts as an error."""
        assert is_error_text(text) is expected
