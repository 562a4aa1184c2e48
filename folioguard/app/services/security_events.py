"""Security event records and sinks.

Events are immutable and handed to a sink. The default sink writes them to
the ``folioguard.security`` logger, which is drained by a background thread.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Mapping, Optional

from folioguard.app.core.logging import SECURITY_LOGGER_NAME, get_log_context


class SecurityEventKind(str, Enum):
    RATE_LIMIT = "rate_limit"
    INJECTION_ATTEMPT = "injection_attempt"
    FILE_REJECTED = "file_rejected"
    INVALID_INPUT = "invalid_input"


@dataclass(frozen=True)
class SecurityEvent:
    """A guardrail decision worth auditing."""
    kind: SecurityEventKind
    identifier: str
    details: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "identifier": self.identifier,
            "details": dict(self.details),
        }


class SecurityEventSink(ABC):
    """Destination for security events."""

    @abstractmethod
    def emit(self, event: SecurityEvent) -> None:
        """Record one event."""


class LoggingSecurityEventSink(SecurityEventSink):
    """Writes events to the security logger as WARNING records."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(SECURITY_LOGGER_NAME)

    def emit(self, event: SecurityEvent) -> None:
        self.logger.warning(
            f"Security event: {event.kind.value}",
            extra=get_log_context(
                identifier=event.identifier,
                event_kind=event.kind.value,
                details=dict(event.details),
                event_timestamp=event.timestamp.isoformat(),
            ),
        )


class InMemorySecurityEventSink(SecurityEventSink):
    """Keeps the most recent events in memory."""

    def __init__(self, max_events: int = 1000):
        self._events: Deque[SecurityEvent] = deque(maxlen=max_events)

    def emit(self, event: SecurityEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> List[SecurityEvent]:
        return list(self._events)

    def of_kind(self, kind: SecurityEventKind) -> List[SecurityEvent]:
        return [e for e in self._events if e.kind == kind]

    def clear(self) -> None:
        self._events.clear()

