"""Turn requested field changes into concrete field values.

Sprint and branch targets accept the ``current`` sentinel, which is resolved
against open tracker issues:

* sprints are labelled ``microsprint`` and titled
  ``Microsprint: YYYY-MM-DD-<suffix>``; today's tracker is the active one
* branches are labelled ``branch`` and titled ``Branch: <name>`` (legacy
  ``Release: <name>``), optionally followed by `` (codename)``
"""

import logging
import re
from collections.abc import Callable
from datetime import date

from pydantic import BaseModel, Field

from ..config import Config
from ..errors import GhBoardError, UsageError
from ..github_client import BoardClient
from .errors import TrackerLookupError

logger = logging.getLogger(__name__)

CURRENT = "current"

SPRINT = "microsprint"
BRANCH = "branch"

SPRINT_PREFIX = "Microsprint: "
BRANCH_PREFIX = "Branch: "
RELEASE_PREFIX = "Release: "

DEFAULT_STATUS_FIELD = "Status"
DEFAULT_PRIORITY_FIELD = "Priority"
DEFAULT_SPRINT_FIELD = "Microsprint"
BRANCH_FIELD = "Branch"

CLEARED = "(cleared)"

_CODENAME_SUFFIX = re.compile(r"\s+\([^)]*\)$")


class TargetRequest(BaseModel):
    """Field changes requested on the command line."""

    status: str | None = None
    priority: str | None = None
    sprint: str | None = None
    branch: str | None = None
    backlog: bool = False

    def ensure_valid(self) -> None:
        """Reject empty or conflicting requests before any API call.

        Raises:
            UsageError: If nothing is requested or --backlog conflicts
        """
        if self.backlog and (self.branch or self.sprint):
            raise UsageError("--backlog cannot be combined with --branch or --sprint")
        if not (
            self.status or self.priority or self.sprint or self.branch or self.backlog
        ):
            raise UsageError(
                "at least one of --status, --priority, --sprint, --branch "
                "or --backlog is required"
            )


class Tracker(BaseModel):
    """A sprint or branch tracker issue."""

    name: str
    is_active: bool = False
    number: int | None = None


def parse_tracker_title(title: str, category: str, today: date) -> Tracker | None:
    """Parse a tracker issue title, or return None if it does not follow the convention."""
    title = title.strip()
    if category == SPRINT:
        if not title.startswith(SPRINT_PREFIX):
            return None
        name = title[len(SPRINT_PREFIX) :].strip()
        active = title.startswith(f"{SPRINT_PREFIX}{today.isoformat()}-")
        return Tracker(name=name, is_active=active)

    for prefix in (BRANCH_PREFIX, RELEASE_PREFIX):
        if title.startswith(prefix):
            name = _CODENAME_SUFFIX.sub("", title[len(prefix) :].strip())
            return Tracker(name=name, is_active=bool(name))
    return None


class TrackerAdapter:
    """Reads tracker issues of one repository."""

    def __init__(
        self,
        client: BoardClient,
        owner: str,
        repo: str,
        today: Callable[[], date] = date.today,
    ):
        self.client = client
        self.owner = owner
        self.repo = repo
        self._today = today

    def list_trackers(self, category: str) -> list[Tracker]:
        """List open trackers of a category (``microsprint`` or ``branch``)."""
        today = self._today()
        trackers = []
        for issue in self.client.get_open_issues_by_label(self.owner, self.repo, category):
            tracker = parse_tracker_title(issue.title, category, today)
            if tracker is not None:
                trackers.append(tracker.model_copy(update={"number": issue.number}))
        return trackers

    def active_branch_names(self) -> frozenset[str]:
        """Names of open branch trackers; empty if discovery fails."""
        try:
            trackers = self.list_trackers(BRANCH)
        except GhBoardError as e:
            logger.warning("Could not discover active branches: %s", e)
            return frozenset()
        return frozenset(tracker.name for tracker in trackers if tracker.is_active)


class ResolvedTargets(BaseModel):
    """Concrete values to write, resolved once per run."""

    status: str | None = None
    priority: str | None = None
    sprint: str | None = None
    branch: str | None = None
    clear_sprint: bool = False
    clear_branch: bool = False
    changes: list[str] = Field(default_factory=list)

    @property
    def needs_validation(self) -> bool:
        return self.status is not None or self.branch is not None


class FieldValueResolver:
    """Resolves a TargetRequest against config aliases and trackers."""

    def __init__(
        self, config: Config, trackers: TrackerAdapter, branch_field: str = BRANCH_FIELD
    ):
        self.config = config
        self.trackers = trackers
        self.branch_field = branch_field

    def resolve(self, request: TargetRequest) -> ResolvedTargets:
        """Resolve every requested target.

        Raises:
            ConfigError: If a status or priority alias is unknown
            TrackerLookupError: If ``current`` finds no active tracker
        """
        resolved = ResolvedTargets()

        if request.status:
            resolved.status = self._alias("status", request.status)
            resolved.changes.append(
                f"{self.config.get_field_name('status', DEFAULT_STATUS_FIELD)} "
                f"-> {resolved.status}"
            )
        if request.priority:
            resolved.priority = self._alias("priority", request.priority)
            resolved.changes.append(
                f"{self.config.get_field_name('priority', DEFAULT_PRIORITY_FIELD)} "
                f"-> {resolved.priority}"
            )

        sprint_label = self.config.get_field_name("sprint", DEFAULT_SPRINT_FIELD)
        if request.sprint:
            resolved.sprint = self._tracker_value(SPRINT, request.sprint)
            resolved.changes.append(f"{sprint_label} -> {resolved.sprint}")
        if request.branch:
            resolved.branch = self._tracker_value(BRANCH, request.branch)
            resolved.changes.append(f"{self.branch_field} -> {resolved.branch}")

        if request.backlog:
            resolved.clear_sprint = True
            resolved.clear_branch = True
            resolved.changes.append(f"{sprint_label} -> {CLEARED}")
            resolved.changes.append(f"{self.branch_field} -> {CLEARED}")

        return resolved

    def _alias(self, field_key: str, value: str) -> str:
        self.config.validate_field_value(field_key, value)
        return self.config.resolve_field_value(field_key, value)

    def _tracker_value(self, category: str, value: str) -> str:
        if value.strip().lower() != CURRENT:
            return value

        try:
            trackers = self.trackers.list_trackers(category)
        except GhBoardError as e:
            raise TrackerLookupError(f"failed to look up active {category}: {e}") from e

        for tracker in trackers:
            if tracker.is_active:
                logger.debug("Resolved current %s to %s", category, tracker.name)
                return tracker.name
        raise TrackerLookupError(f"no active {category} found")
