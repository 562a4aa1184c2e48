"""Pattern tables for content screening.

Each table is a list of ``(regex, label)`` pairs compiled once at import.
Patterns are unanchored and free of nested quantifiers so a scan stays
linear in the length of the text. Matching errs towards false positives.
"""
import re
from typing import List, Tuple

from folioguard.app.services.screening.models import PatternRule, ScreenCategory

INJECTION_PATTERNS: List[Tuple[str, str]] = [
    # SQL
    (r"\b(?:or|and)\b\s*\d+\s*=\s*\d+", "sql_tautology"),
    (r"'\s*(?:or|and)\s*'[^']*'\s*=\s*'", "sql_quoted_tautology"),
    (r"\bunion\s+(?:all\s+)?select\b", "sql_union_select"),
    (r";\s*(?:drop|delete|truncate|alter)\b", "sql_stacked_statement"),
    # Markup and script
    (r"<\s*script\b", "script_tag"),
    (r"javascript\s*:", "javascript_uri"),
    (r"\bon\w+\s*=", "event_handler"),
    # Template expressions
    (r"\{\{[^}]*\}\}", "template_expression"),
    (r"\$\{[^}]*\}", "template_literal"),
    # Code execution
    (r"\beval\s*\(", "eval_call"),
    (r"\bexec\s*\(", "exec_call"),
    (r"\bsystem\s*\(", "system_call"),
    # Prompt injection
    (r"\bignore\s+(?:all\s+)?previous\s+instructions?\b", "prompt_ignore_instructions"),
    (r"\bforget\s+everything\b", "prompt_forget_everything"),
    (r"\byou\s+are\s+now\b", "prompt_role_override"),
]

INAPPROPRIATE_PATTERNS: List[Tuple[str, str]] = [
    (r"\b(?:fuck|shit|damn|ass|bitch|bastard)\b", "profanity"),
    (r"\b(?:nigger|faggot|retard|spic|chink|kike)\b", "slur"),
    (r"\b(?:kill|murder|suicide|rape|torture)\b", "violence"),
    (r"\b(?:porn|sex|nude|nsfw)\b", "adult_content"),
]

# Case-sensitive: passport codes are upper-case by definition
SENSITIVE_PATTERNS: List[Tuple[str, str]] = [
    # Both separators must agree; ZIP+4 codes do not match
    (r"\b\d{3}([-\s]?)\d{2}\1\d{4}\b", "ssn"),
    (r"\b\d{4}(?:[\s-]?\d{4}){3}\b", "payment_card"),
    (r"\b[A-Z]{2}\d{6,8}\b", "passport_number"),
]


def compile_rules(
    patterns: List[Tuple[str, str]],
    category: ScreenCategory,
    flags: int = 0,
) -> List[PatternRule]:
    """Compile a ``(regex, label)`` table into PatternRules."""
    return [
        PatternRule(label=label, category=category, pattern=re.compile(regex, flags))
        for regex, label in patterns
    ]


INJECTION_RULES = compile_rules(INJECTION_PATTERNS, ScreenCategory.INJECTION, re.IGNORECASE)
INAPPROPRIATE_RULES = compile_rules(
    INAPPROPRIATE_PATTERNS, ScreenCategory.INAPPROPRIATE, re.IGNORECASE
)
SENSITIVE_RULES = compile_rules(SENSITIVE_PATTERNS, ScreenCategory.SENSITIVE)

ALL_RULES: List[PatternRule] = INJECTION_RULES + INAPPROPRIATE_RULES + SENSITIVE_RULES
