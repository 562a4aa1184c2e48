"""CSRF protection with signed double-submit tokens.

``GET /api/csrf-token`` returns a random token and sets the signed form
(``token.expiresAt.signature``) in an HttpOnly cookie. State-changing
requests must echo the raw token in the ``x-csrf-token`` header or in a
``_csrf`` field of the JSON body; it has to match the token inside a cookie
that still verifies.
"""

import hmac
import json
import secrets
from typing import Optional

from fastapi import Request, Response

from folioguard.app.core.config import settings
from folioguard.app.core.logging import get_logger
from folioguard.app.core.security import TokenSigner, now_ms
from folioguard.app.exceptions import CSRFValidationError

logger = get_logger(__name__)

CSRF_COOKIE_NAME = "csrf-token"
CSRF_HEADER_NAME = "x-csrf-token"
CSRF_BODY_FIELD = "_csrf"
TOKEN_BYTES = 32
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def generate_csrf_token() -> tuple[str, int]:
    """Generate a raw token and its expiry in epoch milliseconds."""
    token = secrets.token_hex(TOKEN_BYTES)
    expires_at = now_ms() + settings.csrf_token_ttl_seconds * 1000
    return token, expires_at


def get_request_signer(request: Request) -> TokenSigner:
    """The signer the application was built with."""
    return request.app.state.token_signer


def issue_csrf_token(response: Response, signer: TokenSigner) -> str:
    """Set the signed CSRF cookie on ``response`` and return the raw token."""
    token, expires_at = generate_csrf_token()

    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=signer.sign(token, expires_at),
        max_age=settings.csrf_token_ttl_seconds,
        path="/",
        httponly=True,
        secure=settings.csrf_cookie_secure,
        samesite="strict",
    )
    return token


def get_csrf_token_from_cookie(request: Request, signer: TokenSigner) -> Optional[str]:
    """Return the raw token from a cookie that verifies, else None."""
    signed = request.cookies.get(CSRF_COOKIE_NAME)
    if not signed:
        return None
    result = signer.verify(signed)
    return result.payload if result.valid else None


async def _get_submitted_token(request: Request) -> Optional[str]:
    header_token = request.headers.get(CSRF_HEADER_NAME)
    if header_token:
        return header_token

    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(body, dict) and isinstance(body.get(CSRF_BODY_FIELD), str):
        return body[CSRF_BODY_FIELD]
    return None


async def verify_csrf_token(request: Request, signer: Optional[TokenSigner] = None) -> bool:
    """Check a request's CSRF token. Safe methods always pass."""
    if request.method.upper() in SAFE_METHODS:
        return True

    cookie_token = get_csrf_token_from_cookie(request, signer or get_request_signer(request))
    if not cookie_token:
        return False

    submitted = await _get_submitted_token(request)
    if not submitted:
        return False

    return hmac.compare_digest(cookie_token.encode("utf-8"), submitted.encode("utf-8"))


async def require_csrf_token(request: Request) -> None:
    """FastAPI dependency rejecting requests without a valid CSRF token.

    Raises:
        CSRFValidationError: 403 if the token is missing or does not match
    """
    if not await verify_csrf_token(request):
        logger.warning(
            "CSRF validation failed",
            extra={"path": request.url.path, "method": request.method},
        )
        raise CSRFValidationError()
