"""Core utilities for the FolioGuard application."""

from folioguard.app.core.config import GuardrailConfig, settings
from folioguard.app.core.logging import get_logger, setup_logging
from folioguard.app.core.security import (
    TokenSigner,
    TokenVerification,
    generate_pin,
    get_token_signer,
    hash_pin,
    sign_token,
    verify_pin,
    verify_signed_token,
)

__all__ = [
    "GuardrailConfig",
    "settings",
    "get_logger",
    "setup_logging",
    "TokenSigner",
    "TokenVerification",
    "generate_pin",
    "get_token_signer",
    "hash_pin",
    "sign_token",
    "verify_pin",
    "verify_signed_token",
]
