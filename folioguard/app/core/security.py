"""PIN hashing and signed-token primitives.

PINs protect edit access to a stored portfolio. Signed tokens back the CSRF
protection: a token is ``payload.expiresAt.signature`` where the signature is
an HMAC-SHA256 over ``payload.expiresAt`` and ``expiresAt`` is epoch
milliseconds.
"""

import hashlib
import hmac
import secrets
import string
import time
from dataclasses import dataclass
from typing import Optional

from folioguard.app.core.config import PIN_HASH_ALGORITHMS, settings
from folioguard.app.core.logging import get_logger
from folioguard.app.exceptions import GuardrailInternalError

logger = get_logger(__name__)

PBKDF2_ALGORITHM = "pbkdf2_sha256"
LEGACY_ALGORITHM = "sha256"
PBKDF2_ITERATIONS = 100_000
PIN_LENGTH = 6
PIN_ALPHABET = string.ascii_uppercase + string.digits

TOKEN_DELIMITER = "."


def hash_pin(pin: str, algorithm: Optional[str] = None, salt: Optional[str] = None) -> str:
    """Hash an access PIN for storage.

    ``pbkdf2_sha256`` (the default) uses a random salt and 100,000 iterations
    and is encoded as ``pbkdf2_sha256$<iterations>$<salt>$<hex digest>``.
    ``sha256`` produces the bare unsalted hex digest written by the first
    version of the portfolio builder.

    Args:
        pin: The raw PIN
        algorithm: One of PIN_HASH_ALGORITHMS; defaults to pbkdf2_sha256
        salt: Optional salt for pbkdf2_sha256 (random if omitted)

    Returns:
        The encoded digest

    Raises:
        GuardrailInternalError: If the algorithm is unknown or hashing fails
    """
    algorithm = algorithm or PBKDF2_ALGORITHM
    if algorithm not in PIN_HASH_ALGORITHMS:
        raise GuardrailInternalError(f"Unsupported PIN hash algorithm: {algorithm}")

    try:
        if algorithm == LEGACY_ALGORITHM:
            return hashlib.sha256(pin.encode("utf-8")).hexdigest()

        if salt is None:
            salt = secrets.token_hex(16)
        digest = hashlib.pbkdf2_hmac(
            "sha256", pin.encode("utf-8"), salt.encode("utf-8"), PBKDF2_ITERATIONS
        ).hex()
        return f"{PBKDF2_ALGORITHM}${PBKDF2_ITERATIONS}${salt}${digest}"
    except (ValueError, TypeError, UnicodeError) as exc:
        raise GuardrailInternalError(f"PIN hashing failed: {exc}") from exc


def verify_pin(pin: str, digest: str) -> bool:
    """Verify a raw PIN against a stored digest.

    Accepts both the salted pbkdf2 encoding and legacy sha256 hex digests.
    Digests are compared in constant time.

    Args:
        pin: The raw PIN supplied by the caller
        digest: The stored digest

    Returns:
        True if the PIN matches, False otherwise
    """
    if not pin or not digest:
        return False

    if digest.startswith(f"{PBKDF2_ALGORITHM}$"):
        parts = digest.split("$")
        if len(parts) != 4:
            return False
        _, iterations_str, salt, expected = parts
        try:
            iterations = int(iterations_str)
        except ValueError:
            return False
        if iterations < 1:
            return False
        computed = hashlib.pbkdf2_hmac(
            "sha256", pin.encode("utf-8"), salt.encode("utf-8"), iterations
        ).hex()
        return secrets.compare_digest(computed, expected)

    computed = hashlib.sha256(pin.encode("utf-8")).hexdigest()
    return secrets.compare_digest(computed, digest.lower())


def generate_pin(length: int = PIN_LENGTH) -> str:
    """Generate a random upper-case alphanumeric PIN."""
    return "".join(secrets.choice(PIN_ALPHABET) for _ in range(length))


def generate_secret(nbytes: int = 32) -> str:
    """Generate a random hex secret suitable for HMAC signing."""
    return secrets.token_hex(nbytes)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TokenVerification:
    """Result of verifying a signed token."""
    valid: bool
    payload: Optional[str] = None


class TokenSigner:
    """HMAC-SHA256 signer for ``payload.expiresAt.signature`` tokens.

    The payload must not contain the ``.`` delimiter; random hex or
    URL-safe tokens satisfy this.
    """

    def __init__(self, secret: str):
        if not secret:
            raise GuardrailInternalError("Token signer requires a non-empty secret")
        self._key = secret.encode("utf-8")

    @property
    def secret(self) -> str:
        return self._key.decode("utf-8")

    def _signature(self, data: str) -> str:
        return hmac.new(self._key, data.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign(self, payload: str, expires_at: int) -> str:
        """Sign a payload with an absolute expiry.

        Args:
            payload: Opaque token value (must not contain ".")
            expires_at: Expiry in epoch milliseconds

        Returns:
            The signed string ``payload.expiresAt.signature``
        """
        if TOKEN_DELIMITER in payload:
            raise GuardrailInternalError("Token payload must not contain '.'")
        data = f"{payload}{TOKEN_DELIMITER}{int(expires_at)}"
        return f"{data}{TOKEN_DELIMITER}{self._signature(data)}"

    def verify(self, signed: str, now: Optional[int] = None) -> TokenVerification:
        """Verify a signed token.

        Every failure (malformed shape, expiry, signature mismatch) returns
        the same invalid result.

        Args:
            signed: The signed token string
            now: Current epoch milliseconds (defaults to the wall clock)
        """
        invalid = TokenVerification(valid=False)
        if not isinstance(signed, str):
            return invalid

        parts = signed.split(TOKEN_DELIMITER)
        if len(parts) != 3:
            return invalid

        payload, expires_str, signature = parts
        if not payload or not expires_str.isdigit():
            return invalid

        current = now_ms() if now is None else now
        if current > int(expires_str):
            return invalid

        expected = self._signature(f"{payload}{TOKEN_DELIMITER}{expires_str}")
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            return invalid

        return TokenVerification(valid=True, payload=payload)


def resolve_signing_secret(configured: str) -> str:
    """Return the configured secret, or a random one with a warning."""
    if configured:
        return configured
    logger.warning(
        "CSRF_SECRET is not set; generated a random per-process secret. "
        "Tokens issued by this process will not verify on other instances."
    )
    return generate_secret()


_default_signer: TokenSigner | None = None


def get_token_signer() -> TokenSigner:
    """Get the process-wide token signer (created on first use)."""
    global _default_signer
    if _default_signer is None:
        _default_signer = TokenSigner(resolve_signing_secret(settings.csrf_secret))
    return _default_signer


def reset_token_signer(secret: Optional[str] = None) -> None:
    """Replace the process-wide signer (for testing and secret rotation)."""
    global _default_signer
    _default_signer = TokenSigner(secret) if secret else None


def sign_token(payload: str, expires_at: int) -> str:
    """Sign a payload with the process-wide signer."""
    return get_token_signer().sign(payload, expires_at)


def verify_signed_token(signed: str) -> TokenVerification:
    """Verify a token with the process-wide signer."""
    return get_token_signer().verify(signed)
