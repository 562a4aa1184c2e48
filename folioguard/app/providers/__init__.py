"""AI provider selection."""

from folioguard.app.core.config import settings
from folioguard.app.core.http_client import get_http_client
from folioguard.app.core.logging import get_logger
from folioguard.app.providers.base import BaseProvider
from folioguard.app.providers.mock import MockProvider
from folioguard.app.providers.openrouter import OpenRouterProvider

logger = get_logger(__name__)

__all__ = ["BaseProvider", "MockProvider", "OpenRouterProvider", "get_provider"]


def get_provider() -> BaseProvider:
    """Build the configured provider around the shared HTTP client.

    In debug mode the mock provider stands in when no OpenRouter key is set.
    """
    if settings.mock_provider:
        return MockProvider()
    if settings.debug and not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY is not set; using the mock provider")
        return MockProvider()
    return OpenRouterProvider(
        base_url=settings.openrouter_base_url,
        api_key=settings.openrouter_api_key,
        site_url=settings.site_url,
        http_client=get_http_client(),
        timeout=settings.openrouter_timeout,
    )
