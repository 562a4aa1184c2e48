"""Content screening package.

- models.py: Screening result and rule types
- patterns.py: Labelled pattern tables
- screener.py: Screening functions
"""

from folioguard.app.services.screening.models import (
    PatternRule,
    ScreenCategory,
    ScreenResult,
)
from folioguard.app.services.screening.patterns import (
    ALL_RULES,
    INAPPROPRIATE_PATTERNS,
    INAPPROPRIATE_RULES,
    INJECTION_PATTERNS,
    INJECTION_RULES,
    SENSITIVE_PATTERNS,
    SENSITIVE_RULES,
    compile_rules,
)
from folioguard.app.services.screening.screener import (
    contains_inappropriate_content,
    contains_injection_attempt,
    contains_sensitive_info,
    first_match,
    matching_labels,
    screen,
)

__all__ = [
    "PatternRule",
    "ScreenCategory",
    "ScreenResult",
    "ALL_RULES",
    "INAPPROPRIATE_PATTERNS",
    "INAPPROPRIATE_RULES",
    "INJECTION_PATTERNS",
    "INJECTION_RULES",
    "SENSITIVE_PATTERNS",
    "SENSITIVE_RULES",
    "compile_rules",
    "contains_inappropriate_content",
    "contains_injection_attempt",
    "contains_sensitive_info",
    "first_match",
    "matching_labels",
    "screen",
]
