"""Tests for the logging-backed diagnostics sink."""

import logging

from stanchion.diagnostics import LoggingDiagnostics


def test_emits_structured_log_record(caplog) -> None:
    diagnostics = LoggingDiagnostics(logging.getLogger("test.events"))

    with caplog.at_level(logging.INFO, logger="test.events"):
        diagnostics.emit(logging.WARNING, "provider", "retrying", attempt=1, status=None)

    (record,) = caplog.records
    assert record.levelno == logging.WARNING
    assert record.getMessage() == "provider: retrying attempt=1"
    assert record.event == "retrying"
    assert record.subsystem == "provider"
    assert record.fields == {"attempt": 1, "status": None}


def test_skips_disabled_levels(caplog) -> None:
    diagnostics = LoggingDiagnostics(logging.getLogger("test.quiet"))

    with caplog.at_level(logging.WARNING, logger="test.quiet"):
        diagnostics.emit(logging.DEBUG, "agent", "noise")

    assert caplog.records == []
