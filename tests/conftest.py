import copy

import pytest
from fastapi.testclient import TestClient

from folioguard.app.core.config import GuardrailConfig
from folioguard.app.main import create_app
from folioguard.app.middleware.rate_limit import InMemoryRateLimitStore, RateLimiter
from folioguard.app.providers import MockProvider, get_provider
from folioguard.app.services.guardrail import RequestGuardrail
from folioguard.app.services.portfolio_store import InMemoryPortfolioStore, get_portfolio_store
from folioguard.app.services.security_events import InMemorySecurityEventSink

VALID_PORTFOLIO = {
    "name": "Jane O'Neil",
    "title": "Senior Backend Engineer",
    "email": "jane@example.com",
    "location": "Berlin, Germany",
    "currentRole": "Leading the payments platform team at a fintech startup",
    "yearsExperience": "6-10",
    "keyAchievement": "Cut deployment time from hours to minutes",
    "experiences": [
        {
            "company": "Acme Corp",
            "role": "Backend Engineer",
            "duration": "2019 - 2023",
            "achievements": ["Built the billing pipeline end to end"],
        }
    ],
    "projects": [],
    "technicalSkills": ["Python", "Go", "PostgreSQL"],
    "targetRoles": ["Staff Engineer"],
    "uniqueValue": "I turn ambiguous problems into shipped products",
}


@pytest.fixture
def portfolio_payload():
    """A fresh copy of a payload that passes every check."""
    return copy.deepcopy(VALID_PORTFOLIO)


@pytest.fixture
def event_sink():
    return InMemorySecurityEventSink()


@pytest.fixture
def guardrail_config():
    return GuardrailConfig(
        max_requests_per_window=10,
        window_ms=3_600_000,
        max_payload_bytes=1024 * 1024,
        hmac_secret="test-secret",
    )


@pytest.fixture
def guardrail(guardrail_config, event_sink):
    limiter = RateLimiter(
        store=InMemoryRateLimitStore(),
        max_requests=guardrail_config.max_requests_per_window,
        window_ms=guardrail_config.window_ms,
        fail_closed=False,
    )
    return RequestGuardrail(
        config=guardrail_config, rate_limiter=limiter, event_sink=event_sink
    )


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def portfolio_store():
    return InMemoryPortfolioStore()


@pytest.fixture
def app(guardrail, provider, portfolio_store):
    """Application wired to in-memory collaborators and a fixed signing secret."""
    application = create_app(guardrail)
    application.dependency_overrides[get_provider] = lambda: provider
    application.dependency_overrides[get_portfolio_store] = lambda: portfolio_store
    return application


@pytest.fixture
def client(app):
    # https so the Secure CSRF cookie is sent back
    with TestClient(
        app, base_url="https://testserver", raise_server_exceptions=False
    ) as test_client:
        yield test_client


@pytest.fixture
def csrf_headers(client):
    token = client.get("/api/csrf-token").json()["csrfToken"]
    return {"x-csrf-token": token}
