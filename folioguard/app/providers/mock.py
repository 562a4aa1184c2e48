"""Mock provider for development without an OpenRouter key.

Enable with ``MOCK_PROVIDER=true``. Responses are deterministic: resume
parsing gets a small JSON extraction, everything else a short portfolio.
"""

import json
import uuid
from typing import Any, Dict, Optional

from folioguard.app.providers.base import BaseProvider


class MockProvider(BaseProvider):
    """Returns canned chat completions without network access."""

    name = "mock"

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        http_client: Optional[Any] = None,
        timeout: float = 30.0,
        content: Optional[str] = None,
    ):
        super().__init__(base_url, api_key, http_client, timeout)
        self.content = content
        self.calls: list[Dict[str, Any]] = []

    def _generate_content(self, payload: Dict[str, Any]) -> str:
        if self.content is not None:
            return self.content

        messages = payload.get("messages", [])
        system = next((m.get("content", "") for m in messages if m.get("role") == "system"), "")
        if "resume parser" in system:
            return json.dumps({
                "name": "Alex Morgan",
                "email": "alex@example.com",
                "title": "Software Engineer",
                "currentRole": "Builds internal developer tooling",
                "experiences": [{
                    "company": "Example Corp",
                    "role": "Software Engineer",
                    "duration": "2020 - present",
                    "achievements": ["Cut build times by half across the monorepo"],
                }],
                "technicalSkills": ["Python", "FastAPI", "PostgreSQL"],
            })
        return (
            "A results-driven professional with a track record of shipping reliable "
            "software and leading teams through ambitious projects."
        )

    async def chat_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(payload)
        return {
            "id": f"mock-{uuid.uuid4().hex[:12]}",
            "object": "chat.completion",
            "model": payload.get("model", "mock-model"),
            "choices": [{
                "index": 0,
                "message": {"role": "assistant", "content": self._generate_content(payload)},
                "finish_reason": "stop",
            }],
        }
