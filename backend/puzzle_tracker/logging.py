"""Logging configuration for the tracker service.

Every record carries the request id and the tenant scope of the caller
(``role:scope_id``) so access decisions can be traced without logging PHI.
"""

from __future__ import annotations

import contextvars
import logging

from puzzle_tracker.config import settings

request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id",
    default=None,
)
tenant_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tenant",
    default=None,
)

_CONTEXT_FIELDS = (
    ("request_id", request_id_var),
    ("tenant", tenant_var),
)


def _attach_context(record: logging.LogRecord) -> None:
    for field_name, var in _CONTEXT_FIELDS:
        current = getattr(record, field_name, None)
        setattr(record, field_name, current or var.get() or "-")


class RequestContextFilter(logging.Filter):
    """Attach request_id and tenant from contextvars to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        _attach_context(record)
        return True


def configure_logging() -> None:
    """Configure request-scoped logging for the service."""
    factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = factory(*args, **kwargs)
        _attach_context(record)
        return record

    logging.setLogRecordFactory(record_factory)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=(
            "%(asctime)s %(levelname)s %(name)s %(message)s "
            "request_id=%(request_id)s tenant=%(tenant)s"
        ),
    )
    root_logger = logging.getLogger()
    root_logger.addFilter(RequestContextFilter())
    for handler in root_logger.handlers:
        handler.addFilter(RequestContextFilter())
