"""Root logger configuration shared by the API and the CLI."""

import logging
import sys

from authcore.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str | None = None):
    """Attach a single stream handler to the root logger.

    Safe to call more than once; an existing handler installed here is reused.
    """
    root = logging.getLogger()
    root.setLevel((level or settings.log_level).upper())

    for handler in root.handlers:
        if getattr(handler, "_authcore", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._authcore = True
    root.addHandler(handler)
