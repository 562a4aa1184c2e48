"""Result types shared by the guardrail checks."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Why a request was refused.

    RATE_LIMITED, MALFORMED and DISALLOWED are expected outcomes returned as
    data. INTERNAL is only used when a failure is reported at the handler
    boundary.
    """
    RATE_LIMITED = "rate_limited"
    MALFORMED = "malformed"
    DISALLOWED = "disallowed"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single guardrail check."""
    valid: bool
    error: Optional[str] = None
    category: Optional[ErrorCategory] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str, category: ErrorCategory = ErrorCategory.MALFORMED) -> "ValidationResult":
        return cls(valid=False, error=error, category=category)
