"""
Logging utilities for the credential broker.

Every line carries the merchant domain it concerns (``-`` when there is
none). Output goes to stderr so that stdout stays free for an agent
transport.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(domain)s | %(message)s"


class DomainContextFilter(logging.Filter):
    """Give records logged without ``extra={"domain": ...}`` a placeholder."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "domain", None):
            record.domain = "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging and tag every handler with the domain filter."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, DomainContextFilter) for f in handler.filters):
            handler.addFilter(DomainContextFilter())


__all__ = ["DomainContextFilter", "LOG_FORMAT", "configure_logging"]
