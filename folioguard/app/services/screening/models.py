"""Screening models."""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ScreenCategory(str, Enum):
    """Which pattern table a match came from."""
    INJECTION = "injection"
    INAPPROPRIATE = "inappropriate"
    SENSITIVE = "sensitive"


@dataclass(frozen=True)
class PatternRule:
    """A labelled compiled pattern."""
    label: str
    category: ScreenCategory
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(frozen=True)
class ScreenResult:
    """First match found when screening a text."""
    matched: bool
    category: Optional[ScreenCategory] = None
    label: Optional[str] = None
