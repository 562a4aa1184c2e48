"""Lexical screening of free text.

All functions are pure. Non-string or empty input never matches.
"""
from typing import Iterable, List, Optional

from folioguard.app.services.screening.models import PatternRule, ScreenResult
from folioguard.app.services.screening.patterns import (
    ALL_RULES,
    INAPPROPRIATE_RULES,
    INJECTION_RULES,
    SENSITIVE_RULES,
)


def first_match(text: str, rules: Iterable[PatternRule]) -> Optional[PatternRule]:
    """Return the first rule matching ``text``, or None."""
    if not isinstance(text, str) or not text:
        return None
    for rule in rules:
        if rule.matches(text):
            return rule
    return None


def matching_labels(text: str, rules: Iterable[PatternRule] = ALL_RULES) -> List[str]:
    """Labels of every rule matching ``text``."""
    if not isinstance(text, str) or not text:
        return []
    return [rule.label for rule in rules if rule.matches(text)]


def contains_injection_attempt(text: str) -> bool:
    """SQL, markup, template, code-execution or prompt injection idioms."""
    return first_match(text, INJECTION_RULES) is not None


def contains_inappropriate_content(text: str) -> bool:
    """Profanity, slurs, violent or adult terms (whole words)."""
    return first_match(text, INAPPROPRIATE_RULES) is not None


def contains_sensitive_info(text: str) -> bool:
    """SSN, payment card or passport shaped numbers."""
    return first_match(text, SENSITIVE_RULES) is not None


def screen(text: str, rules: Iterable[PatternRule] = ALL_RULES) -> ScreenResult:
    """Screen ``text`` and report the first match across the tables.

    Tables are checked in order: injection, inappropriate, sensitive.
    """
    rule = first_match(text, rules)
    if rule is None:
        return ScreenResult(matched=False)
    return ScreenResult(matched=True, category=rule.category, label=rule.label)
