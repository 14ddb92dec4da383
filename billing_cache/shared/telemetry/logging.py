"""Logging configuration for the cache service."""

import logging
import sys

from billing_cache.core.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-read hit/miss lines; one per cached call.
CACHE_STATS_LOGGER = "billing_cache.infrastructure.cache.core"


def setup_logging() -> None:
    """Configure stdout logging once at startup.

    The root level is DEBUG when settings.debug is True, otherwise INFO.
    Per-read cache statistics stay at INFO unless LOG_CACHE_STATS is set,
    so debug mode does not log every cache read.
    """
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    stats_level = logging.DEBUG if settings.log_cache_stats else logging.INFO
    logging.getLogger(CACHE_STATS_LOGGER).setLevel(stats_level)
