"""Middleware package for FolioGuard."""

from folioguard.app.middleware.csrf import issue_csrf_token, require_csrf_token
from folioguard.app.middleware.request_id import RequestIdMiddleware, get_request_id
from folioguard.app.middleware.request_size import RequestSizeLimitMiddleware
from folioguard.app.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "issue_csrf_token",
    "require_csrf_token",
    "RequestIdMiddleware",
    "get_request_id",
    "RequestSizeLimitMiddleware",
    "SecurityHeadersMiddleware",
]
