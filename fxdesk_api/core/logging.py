"""
Process-wide logging setup.

Every record carries the request correlation id and the organization id taken
from context variables bound by the HTTP middleware, so log lines from the
services and repositories can be tied back to a request and a tenant.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
tenant_id_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] [org=%(tenant_id)s] %(name)s: %(message)s"

# Libraries that log every request or statement at INFO
_CHATTY_LOGGERS = ("aiohttp.access", "sqlalchemy.engine", "passlib")


class LoggingContextFilter(logging.Filter):
    """Copy correlation_id and tenant_id onto the record; '-' when unbound."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.tenant_id = tenant_id_var.get() or "-"
        return True


def _level_number(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    number = logging.getLevelName(str(level).strip().upper())
    return number if isinstance(number, int) else logging.INFO


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str] = logging.INFO) -> None:
    """Install a single stdout handler with the context filter on the root logger."""
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT))
    handler.addFilter(LoggingContextFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(_level_number(level))

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
