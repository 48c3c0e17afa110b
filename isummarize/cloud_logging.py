"""cloud_logging.py – Logging facade for iSummarize

Every module in the package logs through :pyfunc:`log_text` using the Google
Cloud Logging call style::

    from isummarize import cloud_logging as logging
    logging.log_text("Fetched 12 messages", severity="DEBUG")

The Cloud Logging client is created centrally in ``main_driver.py`` and
attached here with :pyfunc:`attach_gcp_logger`.  Until that happens (unit
tests, the CLI, local development) records go to the stdlib ``isummarize``
logger instead, so importing the package never requires GCP credentials.
"""

from __future__ import annotations

import logging as pylogging
import os
from typing import Any, Optional

from google.cloud import logging as gcp_logging

__all__ = [
    "CloudLoggingHandler",
    "attach_gcp_logger",
    "init_cloud_logging",
    "log_text",
    "logger_name",
]

_stdlib_logger = pylogging.getLogger("isummarize")
_gcp_logger: Optional[Any] = None


def logger_name() -> str:
    """Return the Cloud Logging log name for the current environment."""
    return f"{os.getenv('ENV_NAME', 'dev')}_isummarize"


def log_text(message: str, *, severity: str = "INFO") -> None:
    """Write *message* to Cloud Logging when attached, stdlib otherwise."""
    if _gcp_logger is not None:
        _gcp_logger.log_text(message, severity=severity.upper())
        return
    level = pylogging.getLevelName(severity.upper())
    if not isinstance(level, int):
        level = pylogging.INFO
    _stdlib_logger.log(level, message)


def attach_gcp_logger(gcp_logger: Optional[Any]) -> None:
    """Route :pyfunc:`log_text` through *gcp_logger* (``None`` detaches)."""
    global _gcp_logger  # noqa: PLW0603 – process-wide logging sink
    _gcp_logger = gcp_logger


class CloudLoggingHandler(pylogging.Handler):
    """Stdlib logging handler that forwards records to Google Cloud Logging."""

    def __init__(self, gcp_logger):  # noqa: D401 – simple pass-through
        super().__init__()
        self._gcp_logger = gcp_logger

    def emit(self, record: pylogging.LogRecord) -> None:  # noqa: D401
        try:
            msg = self.format(record)
            severity = record.levelname.upper()
            self._gcp_logger.log_text(msg, severity=severity)
        except Exception:  # pragma: no cover – never let logging crash the app
            super().handleError(record)


def init_cloud_logging(level: int = pylogging.INFO):  # pragma: no cover – needs GCP
    """Create the Cloud Logging client and wire it into both logging paths.

    Returns the Cloud Logging logger so callers can hand it to
    :pyfunc:`isummarize.create_app`.
    """
    client = gcp_logging.Client()
    gcp_logger = client.logger(logger_name())
    attach_gcp_logger(gcp_logger)

    # Attach to the *root* logger so Flask, APScheduler and the SDK loggers
    # are forwarded too.
    handler = CloudLoggingHandler(gcp_logger)
    handler.setFormatter(
        pylogging.Formatter("%(asctime)s %(levelname)s %(name)s – %(message)s")
    )
    root_logger = pylogging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    return gcp_logger
