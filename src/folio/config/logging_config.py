"""Logging configuration."""

import logging
import sys

from folio.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Loggers that emit a DEBUG line per reduced action or cache eviction
TRACE_LOGGERS = ("folio.services.reducer", "folio.services.calculation_cache")


def setup_logging() -> None:
    """Configure engine logging from settings."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper())

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # The host may have configured the root logger already
    logging.getLogger("folio").setLevel(level)

    # Per-action tracing is opt-in
    trace_level = level if settings.trace_actions else max(level, logging.INFO)
    for name in TRACE_LOGGERS:
        logging.getLogger(name).setLevel(trace_level)
