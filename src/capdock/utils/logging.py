"""Logging setup for the controller and CLI."""

import logging
import sys


LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

# Client libraries that log every HTTP round trip at INFO/DEBUG
QUIET_LOGGERS = ("asyncio", "aiohttp", "urllib3", "docker", "kubernetes", "watchfiles")


def setup_logging(level: str = "INFO"):
    """Route all records to stdout at ``level``.

    Safe to call again on configuration reload, the previous handler is replaced.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
