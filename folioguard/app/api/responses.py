"""Error responses for refused requests."""

from fastapi.responses import JSONResponse

from folioguard.app.middleware.rate_limit import rate_limit_headers
from folioguard.app.services.guardrail import AdmissionResult
from folioguard.app.services.results import ErrorCategory

CATEGORY_STATUS_CODES = {
    ErrorCategory.RATE_LIMITED: 429,
    ErrorCategory.MALFORMED: 400,
    ErrorCategory.DISALLOWED: 400,
    ErrorCategory.INTERNAL: 500,
}


def rejection_response(result: AdmissionResult) -> JSONResponse:
    """Map a refused admission to its HTTP response.

    rate_limited -> 429 with Retry-After and X-RateLimit-* headers,
    malformed and disallowed -> 400.
    """
    category = result.category or ErrorCategory.MALFORMED
    content = {"error": category.value, "message": result.error}

    errors = result.details.get("errors") if result.details else None
    if errors:
        content["fields"] = errors

    headers = {}
    if category == ErrorCategory.RATE_LIMITED:
        if result.rate_limit is not None:
            headers.update(rate_limit_headers(result.rate_limit))
        elif result.retry_after_seconds:
            headers["Retry-After"] = str(result.retry_after_seconds)

    return JSONResponse(
        status_code=CATEGORY_STATUS_CODES[category],
        content=content,
        headers=headers or None,
    )
