"""Services package for FolioGuard.

This package provides:
- Content screening (pattern tables and screening functions)
- Schema validation with user-safe messages
- The request guardrail that composes the checks
- Security event sinks
- Portfolio storage
"""

from folioguard.app.services.results import ErrorCategory, ValidationResult
from folioguard.app.services.guardrail import (
    AdmissionResult,
    DocumentScreenResult,
    GuardrailRequest,
    RequestGuardrail,
)
from folioguard.app.services.security_events import (
    InMemorySecurityEventSink,
    LoggingSecurityEventSink,
    SecurityEvent,
    SecurityEventKind,
    SecurityEventSink,
)
from folioguard.app.services.portfolio_store import (
    InMemoryPortfolioStore,
    PortfolioRecord,
    PortfolioStore,
    generate_slug,
    get_portfolio_store,
    reset_portfolio_store,
)

__all__ = [
    # Results
    "ErrorCategory",
    "ValidationResult",
    # Guardrail
    "AdmissionResult",
    "DocumentScreenResult",
    "GuardrailRequest",
    "RequestGuardrail",
    # Security events
    "InMemorySecurityEventSink",
    "LoggingSecurityEventSink",
    "SecurityEvent",
    "SecurityEventKind",
    "SecurityEventSink",
    # Portfolio store
    "InMemoryPortfolioStore",
    "PortfolioRecord",
    "PortfolioStore",
    "generate_slug",
    "get_portfolio_store",
    "reset_portfolio_store",
]
