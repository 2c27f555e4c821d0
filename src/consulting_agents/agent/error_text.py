"""Conversion of generation failures into readable agent output.

Failed research or synthesis calls do not stop a consultation; their error is
persisted as the finding or report instead. Such text always starts with
``ERROR_MARKER`` so it can be told apart from real output.
"""

from consulting_agents.core.exceptions import GenerationError, GenerationErrorKind

ERROR_MARKER = "[ERROR]"

_HINTS: dict[GenerationErrorKind, tuple[str, str]] = {
    GenerationErrorKind.AUTH: (
        "Authentication failed",
        "Check the API key configured for the generation service.",
    ),
    GenerationErrorKind.QUOTA: (
        "Quota exceeded",
        "The generation service quota or rate limit was exhausted. "
        "Review the plan and billing settings, then try again.",
    ),
    GenerationErrorKind.SERVICE_DISABLED: (
        "Service not enabled",
        "The generation service is not enabled for this project.",
    ),
    GenerationErrorKind.NETWORK: (
        "Network failure",
        "The generation service could not be reached. Check connectivity and try again.",
    ),
    GenerationErrorKind.TIMEOUT: (
        "Timed out",
        "The generation service did not answer in time. Try again later.",
    ),
    GenerationErrorKind.EMPTY_RESPONSE: (
        "Empty response",
        "The generation service returned no content.",
    ),
    GenerationErrorKind.UNKNOWN: (
        "Unexpected failure",
        "The request to the generation service failed.",
    ),
}


def render_generation_error(error: GenerationError) -> str:
    """Render a tagged generation failure as markdown starting with ERROR_MARKER."""
    label, hint = _HINTS[error.kind]
    text = f"{ERROR_MARKER} {label}: {hint}"

    if error.kind is GenerationErrorKind.SERVICE_DISABLED:
        if error.activation_url:
            text += f" Enable it here: {error.activation_url}"
    elif error.kind is not GenerationErrorKind.TIMEOUT:
        text += f" Details: {error.message}"

    return text


def is_error_text(text: str) -> bool:
    """Check whether agent output was produced from a failure."""
    return text.lstrip().startswith(ERROR_MARKER)
