"""GitHub API access for issues, sub-issues and Projects v2 fields."""

from typing import Protocol

from .client import GitHubClient
from .models import (
    BatchOutcome,
    FieldUpdate,
    Issue,
    IssueRef,
    Project,
    ProjectField,
    ProjectItem,
    SubIssue,
)


class BoardClient(Protocol):
    """Remote operations the transition engine depends on."""

    def get_project(self, owner: str, number: int) -> Project: ...

    def get_project_fields(self, project_id: str) -> list[ProjectField]: ...

    def get_project_items(self, project_id: str) -> list[ProjectItem]: ...

    def get_project_items_by_refs(
        self, project_id: str, refs: list[IssueRef]
    ) -> list[ProjectItem]: ...

    def get_issue(self, owner: str, repo: str, number: int) -> Issue: ...

    def get_sub_issues(self, owner: str, repo: str, number: int) -> list[SubIssue]: ...

    def get_sub_issues_batch(
        self, owner: str, repo: str, numbers: list[int]
    ) -> dict[int, list[SubIssue]]: ...

    def set_field_value(
        self,
        project_id: str,
        item_id: str,
        field_name: str,
        value: str,
        fields: list[ProjectField],
    ) -> None: ...

    def batch_update_fields(
        self,
        project_id: str,
        updates: tuple[FieldUpdate, ...],
        fields: list[ProjectField],
    ) -> list[BatchOutcome]: ...

    def get_open_issues_by_label(
        self, owner: str, repo: str, label: str
    ) -> list[Issue]: ...


__all__ = ["BoardClient", "GitHubClient"]
