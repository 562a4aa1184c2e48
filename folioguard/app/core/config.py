import json
import re
from dataclasses import dataclass
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


PIN_HASH_ALGORITHMS = ("pbkdf2_sha256", "sha256")


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # JSON is the documented format; comma or space separated hosts are tolerated.
    if raw.startswith(("[", '"')):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()

    origins: list[str] = []
    for part in (p for p in re.split(r"[,\s]+", raw) if p):
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
        else:
            origins.append(f"http://{part}")
            origins.append(f"https://{part}")
    return list(dict.fromkeys(origins))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # Public site URL used to build portfolio links
    site_url: str = "http://localhost:3000"

    # Rate limiting settings (fixed window)
    rate_limit_max_requests: int = 10
    rate_limit_window_ms: int = 3_600_000  # 1 hour
    rate_limit_upload_max_requests: int = 5
    rate_limit_sweep_interval_seconds: int = 600
    rate_limit_fail_closed: bool = False  # Deny requests when Redis is unavailable

    # Redis settings (optional, required for multi-instance deployments)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Payload and upload limits
    max_payload_bytes: int = 1024 * 1024  # 1 MiB JSON bodies
    max_file_size_mb: int = 10
    max_document_chars: int = 50_000

    # CSRF / signed token settings
    # Leave empty only for single-process deployments: a random secret is
    # generated at startup and tokens will not verify on other processes.
    csrf_secret: str = ""
    csrf_token_ttl_seconds: int = 24 * 60 * 60
    csrf_cookie_secure: bool = True  # Disable only for plain-HTTP local development

    # PIN hashing: pbkdf2_sha256 (salted) or sha256 (legacy, unsalted)
    pin_hash_algorithm: str = "pbkdf2_sha256"

    # OpenRouter settings
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "anthropic/claude-3-haiku"
    openrouter_timeout: float = 30.0
    mock_provider: bool = False

    # HTTP client connection pool settings
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 60.0
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 100
    httpx_max_keepalive_connections: int = 20

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator(
        "rate_limit_max_requests",
        "rate_limit_upload_max_requests",
        "rate_limit_window_ms",
        "rate_limit_sweep_interval_seconds",
    )
    @classmethod
    def validate_rate_limit_positive(cls, v: int) -> int:
        """Validate rate limit values are positive."""
        if v < 1:
            raise ValueError("Rate limit values must be at least 1")
        return v

    @field_validator("max_payload_bytes", "max_file_size_mb", "max_document_chars")
    @classmethod
    def validate_size_limits_positive(cls, v: int) -> int:
        """Validate size limits are positive."""
        if v < 1:
            raise ValueError("Size limits must be at least 1")
        return v

    @field_validator("pin_hash_algorithm")
    @classmethod
    def validate_pin_hash_algorithm(cls, v: str) -> str:
        """Validate the PIN hash algorithm is supported."""
        v = v.strip().lower()
        if v not in PIN_HASH_ALGORITHMS:
            raise ValueError(
                f"pin_hash_algorithm must be one of: {', '.join(PIN_HASH_ALGORITHMS)}"
            )
        return v

    @field_validator("csrf_secret")
    @classmethod
    def strip_csrf_secret(cls, v: str) -> str:
        # Normalize accidental whitespace/newline from env/secret stores.
        return v.strip()

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@dataclass(frozen=True)
class GuardrailConfig:
    """Configuration shared by the guardrail components.

    Built once from Settings and passed to each component at construction
    time so no component reads the environment on its own.
    """

    max_requests_per_window: int = 10
    window_ms: int = 3_600_000
    max_payload_bytes: int = 1024 * 1024
    hmac_secret: str = ""
    pin_hash_algorithm: str = "pbkdf2_sha256"
    upload_max_requests: int = 5
    max_file_size_bytes: int = 10 * 1024 * 1024
    max_document_chars: int = 50_000

    @classmethod
    def from_settings(cls, source: Settings, hmac_secret: str | None = None) -> "GuardrailConfig":
        """Build a config from application settings.

        Args:
            source: Loaded settings
            hmac_secret: Resolved signing secret (overrides source.csrf_secret)
        """
        return cls(
            max_requests_per_window=source.rate_limit_max_requests,
            window_ms=source.rate_limit_window_ms,
            max_payload_bytes=source.max_payload_bytes,
            hmac_secret=hmac_secret if hmac_secret is not None else source.csrf_secret,
            pin_hash_algorithm=source.pin_hash_algorithm,
            upload_max_requests=source.rate_limit_upload_max_requests,
            max_file_size_bytes=source.max_file_size_mb * 1024 * 1024,
            max_document_chars=source.max_document_chars,
        )


# Global settings instance
settings = Settings()
