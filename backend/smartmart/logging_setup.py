"""
smartmart/logging_setup.py
──────────────────────────
Configures application logging.

Service modules log through ``logging.getLogger(__name__)``; their loggers
are children of ``app.logger`` (named after the package), so the handlers
installed here receive them too.
"""
import os
import logging
from logging.handlers import RotatingFileHandler
from flask import has_request_context, request


class RequestFormatter(logging.Formatter):
    """
    Formatter that injects request info (method, path, remote address)
    into log records when a request context is available.
    """
    def format(self, record):
        if has_request_context():
            record.url = f"{request.method} {request.path}"
            record.remote_addr = request.remote_addr
        else:
            record.url = "-"
            record.remote_addr = "-"
        return super().format(record)


def setup_logging(app):
    """
    Stream handler always; rotating file handler (logs/app.log, 5MB x 5)
    only when LOG_DIR is configured.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    # Avoid stacking handlers when the factory runs more than once (tests)
    for handler in list(app.logger.handlers):
        if getattr(handler, "_smartmart", False):
            app.logger.removeHandler(handler)

    log_dir = app.config.get("LOG_DIR")
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "app.log"),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
        )
        file_handler.setFormatter(RequestFormatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(remote_addr)s | %(url)s | %(message)s"
        ))
        file_handler.setLevel(level)
        file_handler._smartmart = True
        app.logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(RequestFormatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(url)s | %(message)s"
    ))
    stream_handler.setLevel(level)
    stream_handler._smartmart = True
    app.logger.addHandler(stream_handler)

    app.logger.setLevel(level)
