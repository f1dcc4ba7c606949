from __future__ import annotations

import logging
import re

from flask import Flask, has_request_context, request

LEDGER_LOGGER = "milkpool"
LOCAL_FORMAT = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d [%(ledger_route)s] %(message)s"
SERVER_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(ledger_route)s] %(message)s"

# (pattern, replacement) pairs applied in order to the rendered message
_REDACTIONS = (
    (re.compile(r"[A-Za-z0-9_.+-]+@[A-Za-z0-9-]+\.[A-Za-z0-9-.]+"), "[REDACTED_EMAIL]"),
    (
        re.compile(r"(token|api[_-]?key|secret|password|authorization)\s*[:=]\s*([^\s,;]+)", re.IGNORECASE),
        r"\1=[REDACTED]",
    ),
)
_QUIET_LOGGERS = ("werkzeug", "flask_limiter", "sqlalchemy.engine", "alembic.runtime")
_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


class LedgerRouteFilter(logging.Filter):
    """Stamp each record with the HTTP method and endpoint that produced it.

    Records emitted outside a request (CLI commands, migrations) carry ``cli``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.ledger_route = f"{request.method} {request.endpoint or request.path}"
        else:
            record.ledger_route = "cli"
        return True


class PiiRedactionFilter(logging.Filter):
    """Scrub operator emails and credentials before a record is written."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        for pattern, replacement in _REDACTIONS:
            message = pattern.sub(replacement, message)
        record.msg, record.args = message, None
        return True


def configure_logging(app: Flask) -> None:
    level = _level_from_config(app.config.get("LOG_LEVEL"), debug=app.debug)

    root = logging.getLogger()
    root.setLevel(level)
    app.logger.setLevel(level)
    logging.getLogger(LEDGER_LOGGER).setLevel(level)
    if level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    server_mode = app.config.get("ENV") in ("staging", "production") and not app.debug
    formatter = logging.Formatter(SERVER_FORMAT if server_mode else LOCAL_FORMAT)
    wanted = [LedgerRouteFilter]
    if app.config.get("LOG_REDACT_PII", True):
        wanted.append(PiiRedactionFilter)

    for handler in [*root.handlers, *app.logger.handlers]:
        handler.setFormatter(formatter)
        for filter_cls in wanted:
            if not any(isinstance(existing, filter_cls) for existing in handler.filters):
                handler.addFilter(filter_cls())


def _level_from_config(raw, *, debug: bool) -> int:
    if raw is None:
        return logging.DEBUG if debug else logging.INFO
    if isinstance(raw, int):
        return raw
    return _LEVELS.get(str(raw).strip().upper(), logging.INFO)
