"""Bulk transition engine: resolve, expand, validate, then apply."""

import logging
from collections.abc import Callable
from datetime import date

from pydantic import BaseModel, Field

from ..config import Config
from ..errors import GhBoardError
from ..github_client import BoardClient
from ..github_client.models import IssueRef
from .errors import NoValidIssuesError
from .executor import (
    BatchExecutor,
    build_field_updates,
    resolve_branch_field_name,
    tally_results,
)
from .index import ProjectItemIndex
from .models import CandidateIssue, RunSummary
from .refs import parse_repository, resolve_references
from .report import Reporter
from .targets import (
    DEFAULT_PRIORITY_FIELD,
    DEFAULT_SPRINT_FIELD,
    DEFAULT_STATUS_FIELD,
    FieldValueResolver,
    TargetRequest,
    TrackerAdapter,
)
from .tree import DEFAULT_MAX_DEPTH, SubIssueTreeExpander, candidate_from_index
from .validation import ValidationReport, WorkflowValidator

logger = logging.getLogger(__name__)


class MoveOptions(BaseModel):
    """Everything a single ``move`` invocation asks for."""

    issues: list[str] = Field(..., description="Issue tokens as typed")
    request: TargetRequest = Field(default_factory=TargetRequest)
    recursive: bool = False
    depth: int = DEFAULT_MAX_DEPTH
    dry_run: bool = False
    force: bool = False
    yes: bool = False
    repo: str | None = Field(None, description="Default repository override")

    @property
    def multi_issue(self) -> bool:
        return len(self.issues) > 1 or self.recursive


class TransitionEngine:
    """Runs the move phases in order against a BoardClient."""

    def __init__(
        self,
        client: BoardClient,
        config: Config,
        reporter: Reporter | None = None,
        today: Callable[[], date] = date.today,
        retry_delays: tuple[float, ...] | None = None,
    ):
        self.client = client
        self.config = config
        self.reporter = reporter or Reporter()
        self.today = today
        self.retry_delays = retry_delays

    def run(self, options: MoveOptions) -> RunSummary:
        """Execute one move invocation.

        Raises:
            UsageError: Conflicting or missing targets, or a bad --repo
            NoValidIssuesError: No issue token could be resolved
            ConfigError: Unknown status or priority alias
            TrackerLookupError: ``current`` found no active tracker
            ValidationErrors: Workflow rules failed in live mode
        """
        options.request.ensure_valid()
        default_repo = (
            parse_repository(options.repo)
            if options.repo
            else self.config.default_repository()
        )

        refs, parse_errors = resolve_references(options.issues, default_repo)
        reference_errors = [str(error) for error in parse_errors]
        try:
            if not refs:
                raise NoValidIssuesError("no valid issues to update")
            return self._transition(options, refs, reference_errors)
        finally:
            # Printed on every exit path, aborts and rejections included.
            self.reporter.reference_errors(reference_errors)

    def _transition(
        self, options: MoveOptions, refs: list[IssueRef], reference_errors: list[str]
    ) -> RunSummary:
        project = self.client.get_project(
            self.config.project.owner, self.config.project.number
        )
        fields = self.client.get_project_fields(project.id)
        index = ProjectItemIndex.build(
            self.client, project.id, refs, recursive=options.recursive
        )

        candidates = [self._root_candidate(ref, index) for ref in refs]
        if options.recursive:
            expander = SubIssueTreeExpander(self.client, index, max_depth=options.depth)
            candidates = expander.expand(candidates)

        trackers = TrackerAdapter(
            self.client, refs[0].owner, refs[0].repo, today=self.today
        )
        status_field = self.config.get_field_name("status", DEFAULT_STATUS_FIELD)
        priority_field = self.config.get_field_name("priority", DEFAULT_PRIORITY_FIELD)
        sprint_field = self.config.get_field_name("sprint", DEFAULT_SPRINT_FIELD)
        branch_field = resolve_branch_field_name(fields)
        targets = FieldValueResolver(
            self.config, trackers, branch_field=branch_field
        ).resolve(options.request)

        report: ValidationReport | None = None
        if self.config.is_workflow_enabled() and targets.needs_validation:
            active = trackers.active_branch_names() if targets.branch else frozenset()
            validator = WorkflowValidator(
                enabled=True, force=options.force, active_branches=active
            )
            report = validator.validate(
                candidates, targets, status_field=status_field, branch_field=branch_field
            )

        if options.dry_run:
            self.reporter.preview(candidates, targets.changes, report, dry_run=True)
            return RunSummary(dry_run=True, reference_errors=reference_errors)

        if report is not None and not report.passed:
            self.reporter.validation_failed(report.errors)
            raise report.errors

        tracked = [candidate for candidate in candidates if candidate.is_tracked]
        if options.multi_issue:
            self.reporter.preview(candidates, targets.changes, report)
            if tracked and not options.yes:
                if not self.reporter.confirm_update(len(tracked)):
                    self.reporter.aborted()
                    return RunSummary(aborted=True, reference_errors=reference_errors)

        forced = report is not None and report.forced
        if forced:
            self.reporter.force_warnings(report.force_warnings)
            if not options.yes and not self.reporter.confirm_force():
                self.reporter.aborted()
                return RunSummary(aborted=True, reference_errors=reference_errors)

        updates = build_field_updates(
            candidates,
            targets,
            status_field=status_field,
            priority_field=priority_field,
            sprint_field=sprint_field,
            branch_field=branch_field,
        )
        executor = BatchExecutor(
            self.client, project.id, fields, retry_delays=self.retry_delays
        )
        outcomes = executor.apply(updates)
        results = tally_results(candidates, outcomes)
        summary = RunSummary(results=results, reference_errors=reference_errors)

        if options.multi_issue:
            for result in results:
                self.reporter.issue_result(result)
            self.reporter.summary(summary)
        else:
            self.reporter.single_issue(results[0], targets.changes)

        if forced and summary.updated > 0:
            self.reporter.force_used()
        return summary

    def _root_candidate(self, ref: IssueRef, index: ProjectItemIndex) -> CandidateIssue:
        tracked = candidate_from_index(ref, index)
        if tracked is not None:
            return tracked

        logger.debug("%s is not in the project", ref)
        try:
            issue = self.client.get_issue(ref.owner, ref.repo, ref.number)
        except GhBoardError as e:
            logger.debug("Could not fetch %s: %s", ref, e)
            return CandidateIssue(ref=ref)
        return CandidateIssue(ref=ref, title=issue.title, body=issue.body, url=issue.url)
