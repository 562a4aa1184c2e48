"""Custom exceptions for the FolioGuard application.

Expected guardrail outcomes (rate limited, malformed, disallowed) are returned
as result objects, not raised. The exceptions here cover failures that are
not the caller's fault, plus the few HTTP-level rejections raised by route
dependencies.
"""

from pydantic import ValidationError

from folioguard.app.core.logging import get_logger

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred. Please try again later"
VALIDATION_ERROR_MESSAGE = "Please check your input and try again"


class FolioGuardException(Exception):
    """Base class for application exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str = GENERIC_ERROR_MESSAGE):
        self.message = message
        super().__init__(message)


class GuardrailInternalError(FolioGuardException):
    """Raised when hashing, signing or another guardrail primitive fails.

    The message is for server logs only; callers receive a generic message.
    Maps to HTTP 500.
    """
    status_code = 500
    error_code = "internal_error"


class CSRFValidationError(FolioGuardException):
    """Raised when a state-changing request lacks a valid CSRF token.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403
    error_code = "csrf_failed"

    def __init__(self, message: str = "Invalid or missing CSRF token"):
        super().__init__(message)


class ProviderError(FolioGuardException):
    """Raised when the AI provider call fails.

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error_code = "generation_failed"

    def __init__(self, message: str = "AI generation failed", provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class UnsafeGenerationError(FolioGuardException):
    """Raised when generated content fails the output-side screen.

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    error_code = "generation_rejected"

    def __init__(self, message: str = "Generated content failed security check"):
        super().__init__(message)


class PortfolioNotFoundError(FolioGuardException):
    """Maps to HTTP 404 Not Found."""
    status_code = 404
    error_code = "not_found"

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__("Portfolio not found")


class InvalidPinError(FolioGuardException):
    """Maps to HTTP 401 Unauthorized."""
    status_code = 401
    error_code = "invalid_pin"

    def __init__(self, message: str = "Invalid PIN"):
        super().__init__(message)


class EditLimitReachedError(FolioGuardException):
    """Raised when a portfolio has used all of its edits.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403
    error_code = "edit_limit_reached"

    def __init__(self, max_edits: int):
        self.max_edits = max_edits
        super().__init__(f"Edit limit reached (maximum {max_edits})")


def get_safe_error_message(error: BaseException) -> str:
    """Log the full error server-side and return a user-safe message.

    Args:
        error: The exception that reached the handler boundary

    Returns:
        A generic message that reveals nothing about internals
    """
    logger.error(
        "Security error: %s",
        error,
        exc_info=(type(error), error, error.__traceback__),
        extra={"exception_type": type(error).__name__},
    )

    if isinstance(error, ValidationError):
        return VALIDATION_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE
