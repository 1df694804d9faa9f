"""Logging setup for the ``neon-descent`` command.

Diagnostics go to stderr so the JSON run summary on stdout stays parseable.
"""
import logging
import os
import sys

LOG_LEVEL_ENV_VAR = "ND_LOG_LEVEL"
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"

# Only interesting when debugging advisor HTTP traffic
HTTP_LOGGERS = ("urllib3",)


def resolve_level(debug: bool = False) -> int:
    """``--debug`` wins, then ND_LOG_LEVEL, then WARNING.

    An unrecognised ND_LOG_LEVEL value is ignored.
    """
    if debug:
        return logging.DEBUG
    name = (os.getenv(LOG_LEVEL_ENV_VAR) or "").strip().upper()
    level = logging.getLevelName(name) if name else None
    return level if isinstance(level, int) else logging.WARNING


def configure_logging(debug: bool = False) -> int:
    level = resolve_level(debug)
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger("neon_descent").setLevel(level)
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if debug else max(level, logging.WARNING))
    return level
