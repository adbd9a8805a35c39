"""Logging for the review server.

With the stdio transport, stdout carries MCP protocol frames, so any stray
byte written there corrupts the session. Everything the package logs goes to
a single stderr handler on the ``mcp_gitlab_review`` logger, which does not
propagate to the root logger that FastMCP and httpx may configure.
"""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "mcp_gitlab_review"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_logging_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Attach the stderr handler and set the package log level.

    Called once by the CLI with ``--log-level`` and again by the server
    lifespan with ``GitLabConfig.log_level``; the second call only moves the
    level, it never adds a handler.

    Args:
        level: Level name such as ``"DEBUG"`` or ``"INFO"``, any case
    """
    global _logging_configured

    log_level = getattr(logging, level.upper())
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    if _logging_configured:
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    _logging_configured = True

    logger.debug("Logging configured with level %s", level.upper())


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace."""
    if name.startswith(LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def reset_logging() -> None:
    """Drop handlers so tests can configure logging again."""
    global _logging_configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.handlers.clear()
    logger.propagate = True
    _logging_configured = False
