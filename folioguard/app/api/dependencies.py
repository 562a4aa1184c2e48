"""Shared FastAPI dependencies for the API routes."""

from typing import Optional

from fastapi import Request

from folioguard.app.services.guardrail import GuardrailRequest, RequestGuardrail


def get_guardrail(request: Request) -> RequestGuardrail:
    """The guardrail built at application startup."""
    return request.app.state.guardrail


def get_client_ip(request: Request) -> str:
    """Client IP, preferring the first X-Forwarded-For hop set by the proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip
    return request.client.host if request.client else "unknown"


def get_content_length(request: Request) -> Optional[int]:
    raw = request.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def build_guardrail_request(
    request: Request, body=None, identifier: Optional[str] = None
) -> GuardrailRequest:
    """Describe an HTTP request for RequestGuardrail.admit."""
    return GuardrailRequest(
        identifier=identifier or get_client_ip(request),
        method=request.method,
        content_type=request.headers.get("content-type"),
        body=body,
        content_length=get_content_length(request),
    )
