"""Data passed between the phases of a bulk transition."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..github_client.models import IssueRef


class CandidateIssue(BaseModel):
    """An issue selected for the transition, read-only after expansion."""

    model_config = ConfigDict(frozen=True)

    ref: IssueRef
    title: str = ""
    body: str = ""
    url: str = ""
    item_id: str | None = Field(None, description="Project item id; None if untracked")
    depth: int = Field(0, description="0 for roots, parent depth + 1 below")
    field_values: tuple[tuple[str, str], ...] = Field(
        (), description="Current (field name, value) pairs on the board"
    )

    @property
    def number(self) -> int:
        return self.ref.number

    @property
    def is_tracked(self) -> bool:
        return self.item_id is not None

    def field_value(self, field_name: str) -> str:
        for name, value in self.field_values:
            if name == field_name:
                return value
        return ""


class ValidationContext(BaseModel):
    """Everything the workflow rules need to judge one issue."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    current_status: str = ""
    current_branch: str = ""
    body: str = ""
    active_branches: frozenset[str] = frozenset()


class Verdict(str, Enum):
    """Per-issue validation outcome."""

    PASS = "pass"
    PASS_FORCE = "pass-force"
    FAIL = "fail"
    SKIP = "skip"


class IssueVerdict(BaseModel):
    verdict: Verdict
    reasons: list[str] = Field(default_factory=list)

    @property
    def reason(self) -> str:
        return "; ".join(self.reasons)


class IssueStatus(str, Enum):
    UPDATED = "updated"
    FAILED = "failed"
    SKIPPED = "skipped"


class IssueResult(BaseModel):
    """Outcome of the mutation phase for one candidate."""

    issue: CandidateIssue
    status: IssueStatus
    errors: list[str] = Field(default_factory=list)


class RunSummary(BaseModel):
    """Tally of a finished run."""

    results: list[IssueResult] = Field(default_factory=list)
    reference_errors: list[str] = Field(default_factory=list)
    dry_run: bool = False
    aborted: bool = False

    def _count(self, status: IssueStatus) -> int:
        return sum(1 for result in self.results if result.status == status)

    @property
    def updated(self) -> int:
        return self._count(IssueStatus.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(IssueStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(IssueStatus.FAILED)

    @property
    def exit_code(self) -> int:
        if self.reference_errors:
            return 1
        if self.aborted:
            return 0
        return 1 if self.failed else 0
