from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx

from folioguard.app.exceptions import ProviderError

# Generation stops before the model can emit markup or shell commands
DEFAULT_STOP_SEQUENCES = ["<script", "<?php", "sudo", "rm -rf"]
DEFAULT_MAX_TOKENS = 2000


class BaseProvider(ABC):
    """Base class for AI providers.

    Providers accept the shared httpx.AsyncClient for connection pooling,
    or create a client per request if none is given.
    """

    name = "base"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0
    ):
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    @asynccontextmanager
    async def _client_context(self):
        """Yield the shared client, or a per-request client closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a non-streaming chat completion request.

        Args:
            payload: The request payload containing model, messages, etc.

        Returns:
            The JSON response from the API
        """

    def build_payload(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.7,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        stop: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "stop": list(stop if stop is not None else DEFAULT_STOP_SEQUENCES),
        }

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        temperature: float = 0.7,
        stop: Optional[List[str]] = None,
    ) -> str:
        """Run one system+user exchange and return the assistant text.

        Raises:
            ProviderError: If the call fails, the body is not JSON, or the
                response has no content
        """
        payload = self.build_payload(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            model=model,
            temperature=temperature,
            stop=stop,
        )
        try:
            result = await self.chat_completion(payload)
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Provider returned HTTP {e.response.status_code}", provider=self.name
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Provider request failed: {e}", provider=self.name) from e
        except ValueError as e:
            raise ProviderError("Provider returned invalid JSON", provider=self.name) from e

        try:
            content = result["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError("Provider response missing content", provider=self.name) from e
        if not isinstance(content, str):
            raise ProviderError("Provider response missing content", provider=self.name)
        return content
