"""Error taxonomy and its mapping to caller-visible outcomes."""

CAPACITY_MESSAGE = "AI service is temporarily at capacity. Please try again in a few minutes."


class SkillLoopError(Exception):
    """Base class for every error raised by the core."""


class NotFound(SkillLoopError):
    """Plan, day or user missing, or not owned by the caller."""


class InvalidArgument(SkillLoopError):
    """Malformed quiz, answers or ratings."""


class ProviderQuotaExceeded(SkillLoopError):
    """An upstream provider is out of quota or at capacity. Retryable."""


class ProviderFailure(SkillLoopError):
    """Any other upstream provider error, including timeouts."""


class GenerationFailed(SkillLoopError):
    """No usable structure could be extracted from an AI response."""


def error_response(exc: Exception) -> tuple[int, str]:
    """Map an exception to (status, message) for an outer HTTP layer.

    NotFound carries no detail so that ownership mismatches look the same
    as missing resources.
    """
    if isinstance(exc, NotFound):
        return 404, "Not found"
    if isinstance(exc, InvalidArgument):
        return 400, str(exc) or "Invalid request"
    if isinstance(exc, ProviderQuotaExceeded):
        return 503, CAPACITY_MESSAGE
    if isinstance(exc, GenerationFailed):
        return 502, "Content generation failed. Please retry."
    if isinstance(exc, ProviderFailure):
        return 502, "Upstream service error. Please retry."
    return 500, "Internal error"
