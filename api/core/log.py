"""
Logging setup.

Modules log through `logging.getLogger(__name__)` with `key=value` messages;
this only installs the process-wide stderr handler.
"""

from __future__ import annotations

import logging
import sys

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(level or config.log_level())

    # Re-created apps (tests, warm serverless invocations) must not stack handlers.
    if any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in root_logger.handlers
    ):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)
