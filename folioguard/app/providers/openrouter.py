"""OpenRouter provider.

OpenRouter exposes an OpenAI-compatible ``/chat/completions`` endpoint and
uses the HTTP-Referer and X-Title headers to attribute traffic.
"""

from typing import Any, Dict, Optional

import httpx

from folioguard.app.providers.base import BaseProvider


class OpenRouterProvider(BaseProvider):
    """OpenRouter chat completion provider."""

    name = "openrouter"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        site_url: str = "http://localhost:3000",
        app_title: str = "AI Portfolio Builder",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.headers["HTTP-Referer"] = site_url
        self.headers["X-Title"] = app_title

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Raises:
            httpx.HTTPStatusError: If the API returns an error
        """
        url = self._get_endpoint_url("/chat/completions")

        async with self._client_context() as client:
            resp = await client.post(url, headers=self.headers, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
