"""Standard logging configuration for the gh-board CLI."""

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_LEVEL_ENV = "GH_BOARD_LOG_LEVEL"


def _resolve_level(verbose: bool) -> int:
    if verbose:
        return logging.DEBUG

    env_level = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if env_level:
        level = logging.getLevelName(env_level)
        if isinstance(level, int):
            return level
    return logging.WARNING


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a single stderr handler to the ``gh_board`` logger.

    Safe to call more than once; the handler is only added the first time and
    later calls just adjust the level.

    Args:
        verbose: Enable DEBUG output regardless of ``GH_BOARD_LOG_LEVEL``

    Returns:
        The configured package logger
    """
    logger = logging.getLogger("gh_board")
    level = _resolve_level(verbose)

    if not any(
        getattr(handler, "_gh_board_handler", False) for handler in logger.handlers
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._gh_board_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(level)
    logger.setLevel(level)
    return logger
