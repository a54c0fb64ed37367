"""Logging wiring for the console API.

``configure_logging`` gives the ``kalika`` logger a stream handler once;
``install_support_log_handler`` keeps WARN+ records with their request id in an
in-memory deque for quick troubleshooting without external log aggregation.
"""

from __future__ import annotations

import collections
import logging
import os
import time

from flask import g, has_request_context, request

LOG_BUFFER: collections.deque[dict] = collections.deque(maxlen=500)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


class SupportLogHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:
        rid = getattr(g, "request_id", "-") if has_request_context() else "-"
        path = request.path if has_request_context() else "-"
        LOG_BUFFER.append(
            {
                "ts": time.time(),
                "level": record.levelname,
                "logger": record.name,
                "msg": self.format(record),
                "request_id": rid,
                "path": path,
            }
        )


def configure_logging(level: str | None = None) -> logging.Logger:
    log = logging.getLogger("kalika")
    if not log.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(h)
    log.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return log


def install_support_log_handler() -> None:
    root = logging.getLogger()
    if any(isinstance(h, SupportLogHandler) for h in root.handlers):
        return
    h = SupportLogHandler(level=logging.WARNING)
    h.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(h)


__all__ = ["LOG_BUFFER", "configure_logging", "install_support_log_handler"]
