"""Workflow rules for status and branch transitions.

Rules, evaluated independently per issue:

1. backlog -> ready/in_progress needs a branch (existing or assigned now)
2. in_review/done needs a non-empty body
3. in_review/done needs every checklist item checked (``--force`` bypasses)
4. an assigned branch must be one of the active branches, when any are known
"""

import re
from collections.abc import Iterator

from .errors import ValidationError, ValidationErrors
from .models import CandidateIssue, IssueVerdict, ValidationContext, Verdict
from .targets import ResolvedTargets

BACKLOG = "backlog"
READY = "ready"
IN_PROGRESS = "in_progress"
IN_REVIEW = "in_review"
DONE = "done"

_CHECKBOX = re.compile(r"^\s*[-*+]\s+\[([ xX])\]\s*(.*)$")
_FENCE = re.compile(r"^\s*(`{3,}|~{3,})(.*)$")


def normalize_status(value: str | None) -> str:
    """Lower-case a status and treat ``_`` and spaces alike."""
    if not value:
        return ""
    return "_".join(value.replace("_", " ").lower().split())


def iter_checklist_items(body: str) -> Iterator[tuple[bool, str]]:
    """Yield ``(checked, text)`` for checklist lines outside fenced code."""
    fence: str | None = None
    for line in body.splitlines():
        match = _FENCE.match(line)
        if match:
            marker = match.group(1)
            if fence is None:
                fence = marker
                continue
            if (
                marker[0] == fence[0]
                and len(marker) >= len(fence)
                and not match.group(2).strip()
            ):
                fence = None
                continue
        if fence is not None:
            continue

        item = _CHECKBOX.match(line)
        if item:
            yield item.group(1) != " ", item.group(2).strip()


def unchecked_items(body: str) -> list[str]:
    return [text for checked, text in iter_checklist_items(body) if not checked]


def count_unchecked(body: str) -> int:
    return len(unchecked_items(body))


def build_context(
    candidate: CandidateIssue,
    status_field: str,
    branch_field: str,
    active_branches: frozenset[str],
) -> ValidationContext:
    return ValidationContext(
        issue_number=candidate.number,
        current_status=candidate.field_value(status_field),
        current_branch=candidate.field_value(branch_field),
        body=candidate.body,
        active_branches=active_branches,
    )


class ValidationReport:
    """Verdicts and errors for a whole candidate set."""

    def __init__(self) -> None:
        self.verdicts: dict[str, IssueVerdict] = {}
        self.errors = ValidationErrors()
        self.force_warnings: list[str] = []

    @property
    def passed(self) -> bool:
        return not self.errors.has_errors()

    @property
    def forced(self) -> bool:
        return bool(self.force_warnings)

    def verdict_for(self, candidate: CandidateIssue) -> IssueVerdict:
        return self.verdicts.get(candidate.ref.key, IssueVerdict(verdict=Verdict.PASS))


class WorkflowValidator:
    """Applies the workflow rules to every candidate before any mutation."""

    def __init__(
        self,
        enabled: bool = True,
        force: bool = False,
        active_branches: frozenset[str] = frozenset(),
    ):
        self.enabled = enabled
        self.force = force
        self.active_branches = active_branches

    def validate(
        self,
        candidates: list[CandidateIssue],
        targets: ResolvedTargets,
        status_field: str = "Status",
        branch_field: str = "Branch",
    ) -> ValidationReport:
        report = ValidationReport()
        for candidate in candidates:
            if not candidate.is_tracked:
                report.verdicts[candidate.ref.key] = IssueVerdict(verdict=Verdict.SKIP)
                continue
            if not self.enabled:
                report.verdicts[candidate.ref.key] = IssueVerdict(verdict=Verdict.PASS)
                continue

            context = build_context(
                candidate, status_field, branch_field, self.active_branches
            )
            errors, warning = self.check(context, targets)
            for error in errors:
                report.errors.add(error)
            if warning:
                report.force_warnings.append(warning)

            if errors:
                verdict = IssueVerdict(
                    verdict=Verdict.FAIL, reasons=[error.message for error in errors]
                )
            elif warning:
                verdict = IssueVerdict(verdict=Verdict.PASS_FORCE)
            else:
                verdict = IssueVerdict(verdict=Verdict.PASS)
            report.verdicts[candidate.ref.key] = verdict
        return report

    def check(
        self, context: ValidationContext, targets: ResolvedTargets
    ) -> tuple[list[ValidationError], str | None]:
        """Evaluate every rule for one issue.

        Returns:
            The rule violations and, when --force bypassed the checklist rule,
            the force warning
        """
        number = context.issue_number
        target = normalize_status(targets.status)
        current = normalize_status(context.current_status)
        errors: list[ValidationError] = []
        warning = None

        if current == BACKLOG and target in (READY, IN_PROGRESS):
            if targets.branch:
                branch = targets.branch
            elif targets.clear_branch:
                branch = ""
            else:
                branch = context.current_branch
            if not branch.strip():
                errors.append(
                    ValidationError(
                        number,
                        f"No branch assignment. Cannot move from 'backlog' to "
                        f"'{targets.status}' without a branch.",
                        f'Use: gh-board move {number} --branch "<branch>"',
                    )
                )

        if target in (IN_REVIEW, DONE):
            if not context.body.strip():
                errors.append(
                    ValidationError(
                        number,
                        f"Empty body. Cannot move to '{targets.status}' without "
                        "issue content.",
                        f'Use: gh issue edit {number} --body "<description>"',
                    )
                )

            pending = unchecked_items(context.body)
            if pending:
                if self.force:
                    warning = f"#{number} has {len(pending)} unchecked checkbox(es)"
                else:
                    errors.append(
                        ValidationError(
                            number,
                            f"Has {len(pending)} unchecked checkbox(es):\n"
                            + "\n".join(f"  - [ ] {item}" for item in pending),
                            f"Complete these items before moving to "
                            f"{targets.status}, or use --force to bypass.",
                        )
                    )

        if targets.branch and context.active_branches:
            wanted = targets.branch.lower()
            if not any(name.lower() == wanted for name in context.active_branches):
                available = ", ".join(sorted(context.active_branches))
                errors.append(
                    ValidationError(
                        number,
                        f'Branch "{targets.branch}" not found in active branches.',
                        f"Available branches: {available}",
                    )
                )

        return errors, warning
