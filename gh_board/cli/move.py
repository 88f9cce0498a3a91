"""CLI command for moving issues between board states."""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from ..config import Config, load_config, load_config_from_directory
from ..errors import ConfigError, GhBoardError, UsageError
from ..github_client import GitHubClient
from ..transition import MoveOptions, Reporter, TargetRequest, TransitionEngine
from ..transition.errors import ValidationErrors
from ..transition.refs import parse_repository
from ..utils.logging_setup import configure_logging
from .options import (
    BACKLOG_OPTION,
    BRANCH_OPTION,
    CONFIG_OPTION,
    DEPTH_OPTION,
    DRY_RUN_OPTION,
    FORCE_OPTION,
    ISSUES_ARGUMENT,
    PRIORITY_OPTION,
    RECURSIVE_OPTION,
    REPO_OPTION,
    SPRINT_OPTION,
    STATUS_OPTION,
    VERBOSE_OPTION,
    YES_OPTION,
)

console = Console()
logger = logging.getLogger(__name__)


def _load_config(config_path: str | None) -> Config:
    if config_path:
        config = load_config(Path(config_path))
    else:
        config = load_config_from_directory(Path.cwd())
    config.apply_env_overrides()
    config.validate_required()
    return config


def _error(message: str) -> None:
    console.print(f"❌ [red]Error: {escape(message)}[/red]")


def move(
    issues: list[str] = ISSUES_ARGUMENT,
    status: str | None = STATUS_OPTION,
    priority: str | None = PRIORITY_OPTION,
    sprint: str | None = SPRINT_OPTION,
    branch: str | None = BRANCH_OPTION,
    backlog: bool = BACKLOG_OPTION,
    recursive: bool = RECURSIVE_OPTION,
    depth: int = DEPTH_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    force: bool = FORCE_OPTION,
    yes: bool = YES_OPTION,
    repo: str | None = REPO_OPTION,
    config_path: str | None = CONFIG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Update board fields for one or more issues.

    Status and priority accept the aliases configured in .gh-board.yml.
    Sprint and branch accept a literal name or 'current'. Workflow rules
    are checked for every issue before anything is changed; a single
    failing issue stops the whole batch.

    Examples:
        # Start work on an issue in the active branch
        gh-board move 42 --status in_progress --branch current

        # Preview closing an epic and all its sub-issues
        gh-board move 10 --status done --recursive --dry-run

        # Return issues to the backlog
        gh-board move 11 12 --backlog --status backlog --yes
    """
    configure_logging(verbose)

    request = TargetRequest(
        status=status,
        priority=priority,
        sprint=sprint,
        branch=branch,
        backlog=backlog,
    )
    try:
        request.ensure_valid()
        if repo:
            parse_repository(repo)
    except UsageError as e:
        _error(str(e))
        raise typer.Exit(1)

    try:
        config = _load_config(config_path)
    except ConfigError as e:
        _error(f"configuration: {e}")
        raise typer.Exit(1)

    try:
        client = GitHubClient()
    except ValueError as e:
        _error(str(e))
        raise typer.Exit(1)

    options = MoveOptions(
        issues=issues,
        request=request,
        recursive=recursive,
        depth=depth,
        dry_run=dry_run,
        force=force,
        yes=yes,
        repo=repo,
    )
    engine = TransitionEngine(client, config, Reporter(console))

    exit_code = 0
    try:
        summary = engine.run(options)
        exit_code = summary.exit_code
    except ValidationErrors as e:
        logger.debug("Validation rejected the batch: %d error(s)", len(e))
        exit_code = 1
    except GhBoardError as e:
        _error(str(e))
        exit_code = 1
    except KeyboardInterrupt:
        console.print("\n❌ [yellow]Operation cancelled by user[/yellow]")
        exit_code = 1

    if exit_code:
        raise typer.Exit(exit_code)
