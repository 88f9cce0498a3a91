"""Base exception types shared across gh-board packages."""


class GhBoardError(Exception):
    """Base class for all gh-board errors."""


class UsageError(GhBoardError):
    """Invalid or conflicting command-line input, detected before any API call."""


class ConfigError(GhBoardError):
    """Missing, unreadable or invalid configuration."""
