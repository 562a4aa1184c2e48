"""Tests for security event sinks."""

import logging
from datetime import timezone

from folioguard.app.core.logging import SECURITY_LOGGER_NAME
from folioguard.app.services.security_events import (
    InMemorySecurityEventSink,
    LoggingSecurityEventSink,
    SecurityEvent,
    SecurityEventKind,
)


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_event_to_dict():
    event = SecurityEvent(
        kind=SecurityEventKind.FILE_REJECTED,
        identifier="1.2.3.4",
        details={"reason": "Invalid file extension"},
    )

    data = event.to_dict()

    assert data["kind"] == "file_rejected"
    assert data["identifier"] == "1.2.3.4"
    assert data["details"] == {"reason": "Invalid file extension"}
    assert event.timestamp.tzinfo == timezone.utc


def test_logging_sink_writes_warning():
    logger = logging.getLogger(f"{SECURITY_LOGGER_NAME}.test")
    handler = RecordingHandler()
    logger.addHandler(handler)
    logger.propagate = False
    try:
        LoggingSecurityEventSink(logger).emit(SecurityEvent(
            kind=SecurityEventKind.INJECTION_ATTEMPT,
            identifier="1.2.3.4",
            details={"pattern": "script_tag"},
        ))
    finally:
        logger.removeHandler(handler)

    record = handler.records[0]
    assert record.levelno == logging.WARNING
    assert record.getMessage() == "Security event: injection_attempt"
    assert record.identifier == "1.2.3.4"
    assert record.event_kind == "injection_attempt"
    assert record.details == {"pattern": "script_tag"}


def test_logging_sink_defaults_to_security_logger():
    assert LoggingSecurityEventSink().logger.name == SECURITY_LOGGER_NAME


class TestInMemorySink:
    def test_keeps_events_in_order(self):
        sink = InMemorySecurityEventSink()
        for kind in (SecurityEventKind.RATE_LIMIT, SecurityEventKind.INVALID_INPUT):
            sink.emit(SecurityEvent(kind=kind, identifier="a"))

        assert [e.kind for e in sink.events] == [
            SecurityEventKind.RATE_LIMIT,
            SecurityEventKind.INVALID_INPUT,
        ]
        assert len(sink.of_kind(SecurityEventKind.RATE_LIMIT)) == 1

    def test_bounded(self):
        sink = InMemorySecurityEventSink(max_events=2)
        for i in range(3):
            sink.emit(SecurityEvent(kind=SecurityEventKind.RATE_LIMIT, identifier=str(i)))

        assert [e.identifier for e in sink.events] == ["1", "2"]

    def test_clear(self):
        sink = InMemorySecurityEventSink()
        sink.emit(SecurityEvent(kind=SecurityEventKind.RATE_LIMIT, identifier="a"))

        sink.clear()

        assert sink.events == []
