"""Build and apply field updates for the candidate set."""

import logging

import httpx

from ..errors import GhBoardError
from ..github_client import BoardClient
from ..github_client.errors import BatchUpdateError
from ..github_client.models import BatchOutcome, FieldUpdate, ProjectField
from ..github_client.retry import with_retry
from .models import CandidateIssue, IssueResult, IssueStatus
from .targets import BRANCH_FIELD, ResolvedTargets

logger = logging.getLogger(__name__)

LEGACY_BRANCH_FIELD = "Release"
NO_RESULT = "no result returned"


def _key(item: FieldUpdate | BatchOutcome) -> tuple[str, str]:
    return item.item_id, item.field_name


def _by_key(outcomes: list[BatchOutcome]) -> dict[tuple[str, str], BatchOutcome]:
    by_key: dict[tuple[str, str], BatchOutcome] = {}
    for outcome in outcomes:
        by_key.setdefault(_key(outcome), outcome)
    return by_key


def resolve_branch_field_name(fields: list[ProjectField]) -> str:
    """Prefer a ``Branch`` field, fall back to legacy ``Release``."""
    names = {field.name for field in fields}
    if BRANCH_FIELD in names:
        return BRANCH_FIELD
    if LEGACY_BRANCH_FIELD in names:
        return LEGACY_BRANCH_FIELD
    return BRANCH_FIELD


def build_field_updates(
    candidates: list[CandidateIssue],
    targets: ResolvedTargets,
    status_field: str,
    priority_field: str,
    sprint_field: str,
    branch_field: str,
) -> tuple[FieldUpdate, ...]:
    """One update per requested field for every tracked candidate, in order."""
    updates: list[FieldUpdate] = []
    for candidate in candidates:
        if candidate.item_id is None:
            continue

        changes: list[tuple[str, str]] = []
        if targets.status:
            changes.append((status_field, targets.status))
        if targets.priority:
            changes.append((priority_field, targets.priority))
        if targets.sprint:
            changes.append((sprint_field, targets.sprint))
        if targets.branch:
            changes.append((branch_field, targets.branch))
        if targets.clear_sprint:
            changes.append((sprint_field, ""))
        if targets.clear_branch:
            changes.append((branch_field, ""))

        updates.extend(
            FieldUpdate(item_id=candidate.item_id, field_name=name, value=value)
            for name, value in changes
        )
    return tuple(updates)


class BatchExecutor:
    """Applies a tuple of updates, batched first and sequential on failure."""

    def __init__(
        self,
        client: BoardClient,
        project_id: str,
        fields: list[ProjectField],
        max_retries: int = 3,
        retry_delays: tuple[float, ...] | None = None,
    ):
        self.client = client
        self.project_id = project_id
        self.fields = fields
        self.max_retries = max_retries
        self.retry_delays = retry_delays

    def apply(self, updates: tuple[FieldUpdate, ...]) -> list[BatchOutcome]:
        """Return exactly one outcome per update, in input order.

        When the batch request fails, only updates without a settled outcome
        are replayed one at a time, so nothing is applied twice.
        """
        if not updates:
            return []

        try:
            returned = self.client.batch_update_fields(
                self.project_id, updates, self.fields
            )
        except BatchUpdateError as e:
            settled = _by_key(e.outcomes)
            pending = tuple(update for update in updates if _key(update) not in settled)
            logger.warning(
                "Batch update failed after %d settled update(s), retrying %d one "
                "at a time: %s",
                len(settled),
                len(pending),
                e,
            )
            returned = e.outcomes + self._apply_sequentially(pending)
        except (GhBoardError, httpx.HTTPError) as e:
            logger.warning(
                "Batch update failed, retrying %d update(s) one at a time: %s",
                len(updates),
                e,
            )
            returned = self._apply_sequentially(updates)

        by_key = _by_key(returned)
        outcomes: list[BatchOutcome] = []
        for update in updates:
            outcome = by_key.get(_key(update))
            if outcome is None:
                outcome = BatchOutcome(
                    item_id=update.item_id,
                    field_name=update.field_name,
                    success=False,
                    error=NO_RESULT,
                )
            outcomes.append(outcome)
        return outcomes

    def _apply_sequentially(self, updates: tuple[FieldUpdate, ...]) -> list[BatchOutcome]:
        outcomes: list[BatchOutcome] = []
        for update in updates:
            try:
                self._set_with_retry(update)
            except (GhBoardError, httpx.HTTPError) as e:
                outcomes.append(
                    BatchOutcome(
                        item_id=update.item_id,
                        field_name=update.field_name,
                        success=False,
                        error=str(e),
                    )
                )
                continue
            outcomes.append(
                BatchOutcome(
                    item_id=update.item_id, field_name=update.field_name, success=True
                )
            )
        return outcomes

    def _set_with_retry(self, update: FieldUpdate) -> None:
        def attempt() -> None:
            self.client.set_field_value(
                self.project_id,
                update.item_id,
                update.field_name,
                update.value,
                self.fields,
            )

        if self.retry_delays is None:
            with_retry(attempt, max_retries=self.max_retries)
        else:
            with_retry(attempt, max_retries=self.max_retries, delays=self.retry_delays)


def tally_results(
    candidates: list[CandidateIssue], outcomes: list[BatchOutcome]
) -> list[IssueResult]:
    """Fold per-field outcomes into one result per candidate.

    An issue is updated only if every one of its field updates succeeded.
    """
    by_item: dict[str, list[BatchOutcome]] = {}
    for outcome in outcomes:
        by_item.setdefault(outcome.item_id, []).append(outcome)

    results: list[IssueResult] = []
    for candidate in candidates:
        if candidate.item_id is None:
            results.append(IssueResult(issue=candidate, status=IssueStatus.SKIPPED))
            continue

        item_outcomes = by_item.get(candidate.item_id, [])
        errors = [
            f"failed to set {outcome.field_name} for #{candidate.number}: "
            f"{outcome.error}"
            for outcome in item_outcomes
            if not outcome.success
        ]
        status = IssueStatus.FAILED if errors else IssueStatus.UPDATED
        results.append(IssueResult(issue=candidate, status=status, errors=errors))
    return results
