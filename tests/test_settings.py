import pytest
from pydantic import ValidationError

from folioguard.app.core.config import GuardrailConfig, Settings


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "portfolio.example.com")

    settings = Settings(_env_file=None)
    assert "https://portfolio.example.com" in settings.cors_origins
    assert "http://portfolio.example.com" in settings.cors_origins


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:3000"]', ["http://localhost:3000"]),
        ("https://a.example, https://b.example", ["https://a.example", "https://b.example"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.rate_limit_max_requests == 10
    assert settings.rate_limit_window_ms == 3_600_000
    assert settings.rate_limit_upload_max_requests == 5
    assert settings.max_payload_bytes == 1024 * 1024
    assert settings.pin_hash_algorithm == "pbkdf2_sha256"


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "3")
    monkeypatch.setenv("PIN_HASH_ALGORITHM", " SHA256 ")
    monkeypatch.setenv("CSRF_SECRET", "  s3cret\n")

    settings = Settings(_env_file=None)
    assert settings.rate_limit_max_requests == 3
    assert settings.pin_hash_algorithm == "sha256"
    assert settings.csrf_secret == "s3cret"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("RATE_LIMIT_MAX_REQUESTS", "0"),
        ("RATE_LIMIT_WINDOW_MS", "-1"),
        ("MAX_PAYLOAD_BYTES", "0"),
        ("PIN_HASH_ALGORITHM", "md5"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_guardrail_config_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "2")
    monkeypatch.setenv("CSRF_SECRET", "from-env")
    settings = Settings(_env_file=None)

    config = GuardrailConfig.from_settings(settings)
    assert config.max_requests_per_window == 7
    assert config.max_file_size_bytes == 2 * 1024 * 1024
    assert config.hmac_secret == "from-env"

    overridden = GuardrailConfig.from_settings(settings, hmac_secret="resolved")
    assert overridden.hmac_secret == "resolved"
