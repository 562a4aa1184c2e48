"""Request guardrail orchestration.

``RequestGuardrail.admit`` composes the individual checks in a fixed order
and stops at the first failure:

1. rate limit, keyed by the caller identifier
2. content type, declared size and body shape
3. schema validation
4. injection screening of every string in the decoded payload

Expected refusals come back as an AdmissionResult carrying a category and a
user-safe message. Every refusal is also reported to the security event
sink, which can never break admission.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Type

from pydantic import BaseModel

from folioguard.app.core.config import GuardrailConfig
from folioguard.app.core.logging import get_logger
from folioguard.app.exceptions import GuardrailInternalError
from folioguard.app.middleware.rate_limit import RateLimiter, RateLimitResult
from folioguard.app.services.results import ErrorCategory, ValidationResult
from folioguard.app.services.screening import (
    INJECTION_RULES,
    contains_sensitive_info,
    first_match,
)
from folioguard.app.services.security_events import (
    LoggingSecurityEventSink,
    SecurityEvent,
    SecurityEventKind,
    SecurityEventSink,
)
from folioguard.app.services.validation import validate

logger = get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
JSON_CONTENT_TYPE = "application/json"
MULTIPART_CONTENT_TYPE = "multipart/form-data"

# How much of an offending payload is kept in a security event
EVENT_EXCERPT_CHARS = 100

INVALID_CONTENT_MESSAGE = "Invalid content detected"
SENSITIVE_INFO_MESSAGE = (
    "Please remove sensitive information (SSN, credit card numbers) from your resume"
)
UNSAFE_OUTPUT_MESSAGE = "Generated content failed security check"

_TAG_RE = re.compile(r"<[^>]*>")
_QUOTE_RE = re.compile(r"['\";\\]")
_WHITESPACE_RE = re.compile(r"\s+")


def iter_strings(value: Any) -> Iterator[str]:
    """Yield every string in a decoded JSON value, mapping keys included."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from iter_strings(key)
            yield from iter_strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_strings(item)


def _find_injection(payload: Any):
    # Raw strings, not the JSON dump: escaping hides newlines from \s
    for text in iter_strings(payload):
        rule = first_match(text, INJECTION_RULES)
        if rule is not None:
            return rule
    return None


@dataclass
class GuardrailRequest:
    """The parts of an HTTP request the guardrail looks at.

    ``body`` may be raw bytes/str (decoded as JSON when the content type is
    JSON) or an already-parsed mapping such as form fields.
    """
    identifier: str
    method: str = "POST"
    content_type: Optional[str] = None
    body: Any = None
    content_length: Optional[int] = None


@dataclass
class AdmissionResult:
    """Outcome of ``RequestGuardrail.admit``."""
    valid: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None
    retry_after_seconds: Optional[int] = None
    rate_limit: Optional[RateLimitResult] = None
    data: Any = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class DocumentScreenResult:
    """Outcome of screening extracted document text."""
    valid: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None
    reason: Optional[str] = None
    text: str = ""


class RequestGuardrail:
    """Runs the guardrail checks for one request at a time.

    Args:
        config: Limits and secrets shared by the checks
        rate_limiter: Fixed-window limiter (its store is the shared state)
        event_sink: Destination for security events
    """

    def __init__(
        self,
        config: Optional[GuardrailConfig] = None,
        rate_limiter: Optional[RateLimiter] = None,
        event_sink: Optional[SecurityEventSink] = None,
    ):
        self.config = config or GuardrailConfig()
        self.rate_limiter = rate_limiter or RateLimiter(
            max_requests=self.config.max_requests_per_window,
            window_ms=self.config.window_ms,
        )
        self.event_sink = event_sink or LoggingSecurityEventSink()

    async def admit(
        self,
        request: GuardrailRequest,
        schema: Optional[Type[BaseModel]] = None,
        *,
        max_requests: Optional[int] = None,
        window_ms: Optional[int] = None,
        max_payload_bytes: Optional[int] = None,
    ) -> AdmissionResult:
        """Decide whether a request may proceed.

        Args:
            request: The request to admit
            schema: Model class the body must satisfy
            max_requests: Override the per-window limit (e.g. uploads)
            window_ms: Override the window length
            max_payload_bytes: Override the body size limit (e.g. uploads)

        Returns:
            AdmissionResult; ``data`` holds the validated model (or the
            decoded payload when no schema is given) on success

        Raises:
            GuardrailInternalError: If the rate limiter fails unexpectedly
        """
        identifier = request.identifier or "unknown"

        rejected = await self._check_rate_limit(identifier, max_requests, window_ms)
        if rejected is not None:
            return rejected

        limit = max_payload_bytes or self.config.max_payload_bytes
        payload, rejected = self._check_shape(request, identifier, limit)
        if rejected is not None:
            return rejected

        data: Any = payload
        if schema is not None:
            result = validate(payload, schema)
            if not result.valid:
                self.log_security_event(SecurityEvent(
                    kind=SecurityEventKind.INVALID_INPUT,
                    identifier=identifier,
                    details={"reason": "schema", "errors": result.errors},
                ))
                return AdmissionResult(
                    valid=False,
                    error=result.first_error,
                    category=ErrorCategory.MALFORMED,
                    details={"errors": result.errors},
                )
            data = result.data

        if payload is not None:
            rule = _find_injection(payload)
            if rule is not None:
                serialized = json.dumps(payload, default=str, ensure_ascii=False)
                self.log_security_event(SecurityEvent(
                    kind=SecurityEventKind.INJECTION_ATTEMPT,
                    identifier=identifier,
                    details={
                        "pattern": rule.label,
                        "payload": serialized[:EVENT_EXCERPT_CHARS],
                    },
                ))
                return AdmissionResult(
                    valid=False,
                    error=INVALID_CONTENT_MESSAGE,
                    category=ErrorCategory.DISALLOWED,
                )

        return AdmissionResult(valid=True, data=data)

    async def _check_rate_limit(
        self,
        identifier: str,
        max_requests: Optional[int],
        window_ms: Optional[int],
    ) -> Optional[AdmissionResult]:
        try:
            result = await self.rate_limiter.check(
                identifier,
                max_requests=max_requests or self.config.max_requests_per_window,
                window_ms=window_ms or self.config.window_ms,
            )
        except Exception as e:
            raise GuardrailInternalError(f"Rate limiter failed: {e}") from e

        if result.allowed:
            return None

        self.log_security_event(SecurityEvent(
            kind=SecurityEventKind.RATE_LIMIT,
            identifier=identifier,
            details={
                "limit": result.limit,
                "retry_after_seconds": result.retry_after_seconds,
            },
        ))
        return AdmissionResult(
            valid=False,
            error=f"Rate limit exceeded. Try again in {result.retry_after_seconds} seconds",
            category=ErrorCategory.RATE_LIMITED,
            retry_after_seconds=result.retry_after_seconds,
            rate_limit=result,
        )

    def _check_shape(
        self, request: GuardrailRequest, identifier: str, limit: int
    ) -> tuple[Any, Optional[AdmissionResult]]:
        """Check content type and size, and decode the body."""
        method = (request.method or "").upper()
        content_type = (request.content_type or "").lower()
        is_json = JSON_CONTENT_TYPE in content_type
        is_multipart = MULTIPART_CONTENT_TYPE in content_type

        def reject(message: str, reason: str) -> tuple[Any, AdmissionResult]:
            self.log_security_event(SecurityEvent(
                kind=SecurityEventKind.INVALID_INPUT,
                identifier=identifier,
                details={"reason": reason, "method": method},
            ))
            return None, AdmissionResult(
                valid=False, error=message, category=ErrorCategory.MALFORMED
            )

        if method in BODY_METHODS and not (is_json or is_multipart):
            return reject("Invalid content type", "content_type")

        if request.content_length is not None and request.content_length > limit:
            return reject("Request body too large", "payload_too_large")

        body = request.body
        if body is None:
            if method in BODY_METHODS and is_json:
                return reject("Request body must be a JSON object", "empty_body")
            return None, None

        if isinstance(body, (bytes, bytearray, str)):
            if len(body) > limit:
                return reject("Request body too large", "payload_too_large")
            if not is_json:
                return reject("Invalid content type", "content_type")
            try:
                body = json.loads(body)
            except (json.JSONDecodeError, UnicodeDecodeError):
                return reject("Invalid JSON body", "invalid_json")

        if is_json and not isinstance(body, dict):
            return reject("Request body must be a JSON object", "not_an_object")

        if isinstance(body, Mapping):
            body = dict(body)
        return body, None

    @staticmethod
    def sanitize(text: str) -> str:
        """Strip tags, quotes, semicolons and backslashes; collapse whitespace.

        Storage and rendering must still parameterize and escape.
        """
        if not text:
            return ""
        sanitized = _TAG_RE.sub("", text)
        sanitized = _QUOTE_RE.sub("", sanitized)
        return _WHITESPACE_RE.sub(" ", sanitized).strip()

    def screen_generated_output(self, text: str, source: str = "ai-response") -> ValidationResult:
        """Re-screen provider output for injection before it is returned or stored."""
        rule = first_match(text, INJECTION_RULES)
        if rule is None:
            return ValidationResult.ok()

        self.log_security_event(SecurityEvent(
            kind=SecurityEventKind.INJECTION_ATTEMPT,
            identifier=source,
            details={"pattern": rule.label, "output": text[:EVENT_EXCERPT_CHARS]},
        ))
        return ValidationResult.fail(UNSAFE_OUTPUT_MESSAGE, ErrorCategory.DISALLOWED)

    def screen_document(self, text: str, identifier: str = "unknown") -> DocumentScreenResult:
        """Screen text extracted from an uploaded document.

        Injection and sensitive numbers are refused. Accepted text is
        sanitized and truncated to ``max_document_chars``.
        """
        text = text or ""

        rule = first_match(text, INJECTION_RULES)
        if rule is not None:
            self.log_security_event(SecurityEvent(
                kind=SecurityEventKind.INJECTION_ATTEMPT,
                identifier=identifier,
                details={"pattern": rule.label, "source": "document"},
            ))
            return DocumentScreenResult(
                valid=False,
                error=f"{INVALID_CONTENT_MESSAGE} in file",
                category=ErrorCategory.DISALLOWED,
                reason="injection",
            )

        if contains_sensitive_info(text):
            self.log_security_event(SecurityEvent(
                kind=SecurityEventKind.INVALID_INPUT,
                identifier=identifier,
                details={"reason": "sensitive_info", "source": "document"},
            ))
            return DocumentScreenResult(
                valid=False,
                error=SENSITIVE_INFO_MESSAGE,
                category=ErrorCategory.DISALLOWED,
                reason="sensitive_info",
            )

        sanitized = self.sanitize(text)[: self.config.max_document_chars]
        return DocumentScreenResult(valid=True, text=sanitized)

    def log_security_event(self, event: SecurityEvent) -> None:
        """Hand an event to the sink. Sink failures are logged, never raised."""
        try:
            self.event_sink.emit(event)
        except Exception:
            logger.exception(
                "Security event sink failed",
                extra={"event_kind": event.kind.value, "identifier": event.identifier},
            )
