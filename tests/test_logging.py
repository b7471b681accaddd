"""Tests for the shared logging configuration."""

from __future__ import annotations

import logging

from scp_local.core.logging import LOG_FORMAT, DomainContextFilter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("scp_local.test", logging.INFO, __file__, 1, "hello", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_records_without_domain_get_placeholder() -> None:
    record = _record()

    assert DomainContextFilter().filter(record) is True
    assert logging.Formatter(LOG_FORMAT).format(record).endswith("| scp_local.test | - | hello")


def test_records_keep_their_domain() -> None:
    record = _record(domain="acme.example")

    DomainContextFilter().filter(record)

    assert record.domain == "acme.example"
    assert "| acme.example | hello" in logging.Formatter(LOG_FORMAT).format(record)


def test_configure_logging_adds_filter_once() -> None:
    configure_logging("WARNING")
    configure_logging("WARNING")

    for handler in logging.getLogger().handlers:
        tagged = [f for f in handler.filters if isinstance(f, DomainContextFilter)]
        assert len(tagged) == 1
