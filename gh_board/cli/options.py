"""Standardized CLI option definitions for consistent shorthand mappings."""

import typer

from ..transition.tree import DEFAULT_MAX_DEPTH

ISSUES_ARGUMENT = typer.Argument(
    ..., help="Issues to update: 123, #123 or owner/repo#123", show_default=False
)

# Target options - which fields to change
STATUS_OPTION = typer.Option(
    None, "--status", "-s", help="Set status (e.g. backlog, in_progress, done)"
)

PRIORITY_OPTION = typer.Option(None, "--priority", "-p", help="Set priority (e.g. p0, p1)")

SPRINT_OPTION = typer.Option(
    None,
    "--sprint",
    "--microsprint",
    "-m",
    help="Assign to a sprint; 'current' uses today's active microsprint",
)

BRANCH_OPTION = typer.Option(
    None, "--branch", "-b", help="Assign to a branch; 'current' uses the active branch"
)

BACKLOG_OPTION = typer.Option(
    False, "--backlog", help="Clear branch and sprint (cannot combine with either)"
)

# Scope options
RECURSIVE_OPTION = typer.Option(
    False, "--recursive", "-r", help="Also update all sub-issues"
)

DEPTH_OPTION = typer.Option(
    DEFAULT_MAX_DEPTH, "--depth", min=0, help="Maximum sub-issue depth with --recursive"
)

REPO_OPTION = typer.Option(
    None, "--repo", "-R", help="Default repository for bare issue numbers (owner/repo)"
)

# Behavior options - control command behavior
DRY_RUN_OPTION = typer.Option(
    False, "--dry-run", "-d", help="Preview changes without applying them"
)

FORCE_OPTION = typer.Option(
    False, "--force", "-f", help="Bypass the unchecked checklist rule"
)

YES_OPTION = typer.Option(False, "--yes", "-y", help="Skip confirmation prompts")

CONFIG_OPTION = typer.Option(
    None, "--config", help="Path to config file (default: nearest .gh-board.yml)"
)

VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
