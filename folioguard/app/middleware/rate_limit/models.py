"""Rate limiting data models.

Times are epoch milliseconds throughout.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class RateLimitEntry:
    """Fixed-window counter for one identifier."""
    identifier: str
    count: int
    window_reset_at: int

    def is_expired(self, now: int) -> bool:
        return now >= self.window_reset_at


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: Optional[int] = None
