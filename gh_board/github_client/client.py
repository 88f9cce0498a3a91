"""GitHub API client for issues (PyGithub) and Projects v2 (GraphQL)."""

import logging
import os
import time
from datetime import date
from typing import Any

from github import Auth, Github
from github.GithubException import GithubException

from .errors import (
    BatchUpdateError,
    GitHubAPIError,
    NotFoundError,
    is_not_found,
    wrap_error,
)
from .graphql import GraphQLClient, graphql_error
from .models import (
    FIELD_TYPE_DATE,
    FIELD_TYPE_NUMBER,
    FIELD_TYPE_SINGLE_SELECT,
    FIELD_TYPE_TEXT,
    BatchOutcome,
    FieldOption,
    FieldUpdate,
    Issue,
    IssueRef,
    Project,
    ProjectField,
    ProjectItem,
    SubIssue,
)

logger = logging.getLogger(__name__)

BATCH_MUTATION_SIZE = 50
SUB_ISSUES_FEATURE = "sub_issues"

PROJECT_QUERY = """
query($owner: String!, $number: Int!) {
  %s(login: $owner) {
    projectV2(number: $number) { id number title url }
  }
}
"""

FIELDS_QUERY = """
query($projectId: ID!, $cursor: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          ... on ProjectV2FieldCommon { id name dataType }
          ... on ProjectV2SingleSelectField { options { id name } }
        }
      }
    }
  }
}
"""

FIELD_VALUES_FRAGMENT = """
fragment FieldValueParts on ProjectV2ItemFieldValue {
  ... on ProjectV2ItemFieldSingleSelectValue {
    name field { ... on ProjectV2FieldCommon { name } }
  }
  ... on ProjectV2ItemFieldTextValue {
    text field { ... on ProjectV2FieldCommon { name } }
  }
  ... on ProjectV2ItemFieldNumberValue {
    number field { ... on ProjectV2FieldCommon { name } }
  }
  ... on ProjectV2ItemFieldDateValue {
    date field { ... on ProjectV2FieldCommon { name } }
  }
  ... on ProjectV2ItemFieldIterationValue {
    title field { ... on ProjectV2FieldCommon { name } }
  }
}
"""

ITEMS_QUERY = (
    """
query($projectId: ID!, $cursor: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      items(first: 100, after: $cursor) {
        pageInfo { hasNextPage endCursor }
        nodes {
          id
          content {
            ... on Issue {
              number title body url
              repository { name owner { login } }
            }
          }
          fieldValues(first: 50) { nodes { ...FieldValueParts } }
        }
      }
    }
  }
}
"""
    + FIELD_VALUES_FRAGMENT
)

ISSUE_PROJECT_ITEMS_FIELDS = """
number title body url
projectItems(first: 20) {
  nodes {
    id
    project { id }
    fieldValues(first: 50) { nodes { ...FieldValueParts } }
  }
}
"""

SUB_ISSUE_FIELDS = """
subIssues(first: 100%s) {
  pageInfo { hasNextPage endCursor }
  nodes { number title state url repository { name owner { login } } }
}
"""

SUB_ISSUES_QUERY = """
query($owner: String!, $name: String!, $number: Int!, $cursor: String) {
  repository(owner: $owner, name: $name) {
    issue(number: $number) { %s }
  }
}
""" % (SUB_ISSUE_FIELDS % ", after: $cursor")

UPDATE_FIELD_MUTATION = """
mutation($input: UpdateProjectV2ItemFieldValueInput!) {
  updateProjectV2ItemFieldValue(input: $input) { projectV2Item { id } }
}
"""

CLEAR_FIELD_MUTATION = """
mutation($input: ClearProjectV2ItemFieldValueInput!) {
  clearProjectV2ItemFieldValue(input: $input) { projectV2Item { id } }
}
"""


def _field_values(nodes: list[dict[str, Any]] | None) -> dict[str, str]:
    """Flatten GraphQL field value nodes into ``{field name: display value}``."""
    values: dict[str, str] = {}
    for node in nodes or []:
        if not node:
            continue
        field_name = (node.get("field") or {}).get("name")
        if not field_name:
            continue
        for key in ("name", "text", "date", "title"):
            if node.get(key) is not None:
                values[field_name] = str(node[key])
                break
        else:
            number = node.get("number")
            if number is not None:
                values[field_name] = (
                    str(int(number)) if float(number).is_integer() else str(number)
                )
    return values


def _sub_issue(node: dict[str, Any]) -> SubIssue:
    repository = node.get("repository") or {}
    return SubIssue(
        number=node["number"],
        title=node.get("title") or "",
        state=node.get("state") or "OPEN",
        url=node.get("url") or "",
        owner=(repository.get("owner") or {}).get("login", ""),
        repo=repository.get("name", ""),
    )


def _update_value(field: ProjectField, value: str) -> dict[str, Any]:
    """Build the ProjectV2FieldValue input for a field.

    Raises:
        GitHubAPIError: If the value does not fit the field type
    """
    if field.data_type == FIELD_TYPE_SINGLE_SELECT:
        option = field.find_option(value)
        if option is None:
            raise GitHubAPIError(f'option "{value}" not found for field "{field.name}"')
        return {"singleSelectOptionId": option.id}
    if field.data_type == FIELD_TYPE_TEXT:
        return {"text": value}
    if field.data_type == FIELD_TYPE_NUMBER:
        try:
            return {"number": float(value)}
        except ValueError:
            raise GitHubAPIError(f"invalid number value: {value}") from None
    if field.data_type == FIELD_TYPE_DATE:
        try:
            date.fromisoformat(value)
        except ValueError:
            raise GitHubAPIError(
                f"invalid date format (expected YYYY-MM-DD): {value}"
            ) from None
        return {"date": value}
    raise GitHubAPIError(f"unsupported field type: {field.data_type}")


def _find_field(fields: list[ProjectField], name: str) -> ProjectField:
    for field in fields:
        if field.name == name:
            return field
    raise GitHubAPIError(f'field "{name}" not found in project')


class GitHubClient:
    """GitHub API client for issue reads and project field updates."""

    def __init__(
        self,
        token: str | None = None,
        graphql_url: str | None = None,
        transport: Any = None,
    ):
        """Initialize GitHub client with authentication.

        Args:
            token: GitHub personal access token. If None, reads from
                GITHUB_TOKEN then GH_TOKEN env vars.
            graphql_url: GraphQL endpoint override
            transport: Optional httpx transport for the GraphQL client
        """
        self.token = token or os.getenv("GITHUB_TOKEN") or os.getenv("GH_TOKEN")
        if not self.token:
            raise ValueError(
                "GitHub token is required. Set GITHUB_TOKEN or GH_TOKEN "
                "environment variable."
            )

        self.github = Github(auth=Auth.Token(self.token))
        self.graphql = GraphQLClient(self.token, url=graphql_url, transport=transport)

    def _check_rate_limit(self) -> None:
        """Sleep until reset when the REST rate limit is nearly exhausted."""
        try:
            remaining, _limit = self.github.rate_limiting
            logger.debug("GitHub API rate limit: %s requests remaining", remaining)

            if remaining < 10:
                sleep_time = self.github.rate_limiting_resettime - time.time() + 1
                if sleep_time > 0:
                    logger.warning(
                        "Rate limit low, sleeping for %.1f seconds...", sleep_time
                    )
                    time.sleep(sleep_time)
        except Exception as e:
            logger.debug("Rate limit check skipped: %s", e)

    def _convert_issue(self, github_issue: Any, owner: str, repo: str) -> Issue:
        """Convert PyGitHub issue to our model."""
        return Issue(
            number=github_issue.number,
            title=github_issue.title or "",
            body=github_issue.body or "",
            state=github_issue.state or "open",
            url=github_issue.html_url or "",
            owner=owner,
            repo=repo,
            labels=[label.name for label in github_issue.labels],
        )

    # Projects

    def get_project(self, owner: str, number: int) -> Project:
        """Look up a project by owner login and number.

        Organization projects are tried first, then user projects.

        Raises:
            NotFoundError: If neither lookup finds the project
        """
        for owner_type in ("organization", "user"):
            try:
                data = self.graphql.execute(
                    PROJECT_QUERY % owner_type,
                    {"owner": owner, "number": number},
                    operation="get project",
                )
            except GitHubAPIError as e:
                if is_not_found(e):
                    logger.debug("No %s project %s/%d: %s", owner_type, owner, number, e)
                    continue
                raise

            node = (data.get(owner_type) or {}).get("projectV2")
            if node:
                return Project(
                    id=node["id"],
                    number=node["number"],
                    title=node.get("title") or "",
                    url=node.get("url") or "",
                    owner=owner,
                )

        raise NotFoundError(
            "project not found", operation="get project", resource=f"{owner}/{number}"
        )

    def get_project_fields(self, project_id: str) -> list[ProjectField]:
        fields: list[ProjectField] = []
        cursor = None
        while True:
            data = self.graphql.execute(
                FIELDS_QUERY,
                {"projectId": project_id, "cursor": cursor},
                operation="get project fields",
            )
            connection = (data.get("node") or {}).get("fields") or {}
            for node in connection.get("nodes") or []:
                if not node or "id" not in node:
                    continue
                fields.append(
                    ProjectField(
                        id=node["id"],
                        name=node["name"],
                        data_type=node.get("dataType") or "",
                        options=[
                            FieldOption(id=opt["id"], name=opt["name"])
                            for opt in node.get("options") or []
                        ],
                    )
                )
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return fields
            cursor = page_info.get("endCursor")

    def get_project_items(self, project_id: str) -> list[ProjectItem]:
        """Fetch every issue item on the project, 100 per page.

        Draft issues and pull requests are skipped.
        """
        items: list[ProjectItem] = []
        cursor = None
        page = 0
        while True:
            page += 1
            data = self.graphql.execute(
                ITEMS_QUERY,
                {"projectId": project_id, "cursor": cursor},
                operation="get project items",
            )
            connection = (data.get("node") or {}).get("items") or {}
            for node in connection.get("nodes") or []:
                content = (node or {}).get("content") or {}
                if "number" not in content:
                    continue
                repository = content.get("repository") or {}
                items.append(
                    ProjectItem(
                        id=node["id"],
                        issue=IssueRef(
                            owner=(repository.get("owner") or {}).get("login", ""),
                            repo=repository.get("name", ""),
                            number=content["number"],
                        ),
                        title=content.get("title") or "",
                        body=content.get("body") or "",
                        url=content.get("url") or "",
                        field_values=_field_values(
                            (node.get("fieldValues") or {}).get("nodes")
                        ),
                    )
                )
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                logger.debug("Fetched %d project items in %d page(s)", len(items), page)
                return items
            cursor = page_info.get("endCursor")

    def get_project_items_by_refs(
        self, project_id: str, refs: list[IssueRef]
    ) -> list[ProjectItem]:
        """Fetch project items for specific issues only.

        One aliased query is sent per repository. Issues that do not exist or
        are not on the project are left out of the result.
        """
        groups: dict[tuple[str, str], list[int]] = {}
        for ref in refs:
            numbers = groups.setdefault((ref.owner, ref.repo), [])
            if ref.number not in numbers:
                numbers.append(ref.number)

        items: list[ProjectItem] = []
        for (owner, repo), numbers in groups.items():
            selections = "\n".join(
                f"i{number}: issue(number: {number}) {{ {ISSUE_PROJECT_ITEMS_FIELDS} }}"
                for number in numbers
            )
            query = (
                "query($owner: String!, $name: String!) {\n"
                f"  repository(owner: $owner, name: $name) {{ {selections} }}\n"
                "}\n" + FIELD_VALUES_FRAGMENT
            )
            body = self.graphql.request(
                query, {"owner": owner, "name": repo}, operation="get project items"
            )
            errors = [
                err for err in body.get("errors") or [] if err.get("type") != "NOT_FOUND"
            ]
            if errors:
                raise graphql_error(errors, "get project items")

            repository = (body.get("data") or {}).get("repository") or {}
            for number in numbers:
                issue = repository.get(f"i{number}")
                if not issue:
                    continue
                for node in (issue.get("projectItems") or {}).get("nodes") or []:
                    if ((node or {}).get("project") or {}).get("id") != project_id:
                        continue
                    items.append(
                        ProjectItem(
                            id=node["id"],
                            issue=IssueRef(owner=owner, repo=repo, number=number),
                            title=issue.get("title") or "",
                            body=issue.get("body") or "",
                            url=issue.get("url") or "",
                            field_values=_field_values(
                                (node.get("fieldValues") or {}).get("nodes")
                            ),
                        )
                    )
                    break
        return items

    # Issues

    def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        """Get a specific issue through the REST API."""
        self._check_rate_limit()

        try:
            repository = self.github.get_repo(f"{owner}/{repo}")
            github_issue = repository.get_issue(number)
            return self._convert_issue(github_issue, owner, repo)
        except GithubException as e:
            raise wrap_error("get issue", f"{owner}/{repo}#{number}", e) from e

    def get_open_issues_by_label(self, owner: str, repo: str, label: str) -> list[Issue]:
        """List open issues carrying a label, excluding pull requests."""
        self._check_rate_limit()

        try:
            repository = self.github.get_repo(f"{owner}/{repo}")
            issues = []
            for github_issue in repository.get_issues(state="open", labels=[label]):
                if github_issue.pull_request is not None:
                    continue
                issues.append(self._convert_issue(github_issue, owner, repo))
            return issues
        except GithubException as e:
            raise wrap_error("list issues", f"{owner}/{repo} label:{label}", e) from e

    def get_sub_issues(self, owner: str, repo: str, number: int) -> list[SubIssue]:
        children: list[SubIssue] = []
        cursor = None
        while True:
            data = self.graphql.execute(
                SUB_ISSUES_QUERY,
                {"owner": owner, "name": repo, "number": number, "cursor": cursor},
                features=[SUB_ISSUES_FEATURE],
                operation="get sub-issues",
            )
            issue = (data.get("repository") or {}).get("issue")
            if issue is None:
                raise NotFoundError(
                    "issue not found",
                    operation="get sub-issues",
                    resource=f"{owner}/{repo}#{number}",
                )
            connection = issue.get("subIssues") or {}
            children.extend(_sub_issue(node) for node in connection.get("nodes") or [])
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                return children
            cursor = page_info.get("endCursor")

    def get_sub_issues_batch(
        self, owner: str, repo: str, numbers: list[int]
    ) -> dict[int, list[SubIssue]]:
        """Fetch sub-issues for several parents of one repository in one query.

        Parents with more than one page of children are completed with
        ``get_sub_issues``.
        """
        if not numbers:
            return {}

        selections = "\n".join(
            f"i{number}: issue(number: {number}) {{ {SUB_ISSUE_FIELDS % ''} }}"
            for number in dict.fromkeys(numbers)
        )
        query = (
            "query($owner: String!, $name: String!) {\n"
            f"  repository(owner: $owner, name: $name) {{ {selections} }}\n"
            "}"
        )
        data = self.graphql.execute(
            query,
            {"owner": owner, "name": repo},
            features=[SUB_ISSUES_FEATURE],
            operation="get sub-issues batch",
        )

        repository = data.get("repository") or {}
        result: dict[int, list[SubIssue]] = {}
        for number in numbers:
            issue = repository.get(f"i{number}")
            if not issue:
                result[number] = []
                continue
            connection = issue.get("subIssues") or {}
            if (connection.get("pageInfo") or {}).get("hasNextPage"):
                result[number] = self.get_sub_issues(owner, repo, number)
            else:
                result[number] = [
                    _sub_issue(node) for node in connection.get("nodes") or []
                ]
        return result

    # Field mutations

    def set_field_value(
        self,
        project_id: str,
        item_id: str,
        field_name: str,
        value: str,
        fields: list[ProjectField],
    ) -> None:
        """Set or clear one field on one project item.

        An empty value clears the field.
        """
        field = _find_field(fields, field_name)
        base = {"projectId": project_id, "itemId": item_id, "fieldId": field.id}

        if value == "":
            self.graphql.execute(
                CLEAR_FIELD_MUTATION, {"input": base}, operation="clear field"
            )
            return

        base["value"] = _update_value(field, value)
        self.graphql.execute(
            UPDATE_FIELD_MUTATION, {"input": base}, operation="set field"
        )

    def batch_update_fields(
        self,
        project_id: str,
        updates: list[FieldUpdate] | tuple[FieldUpdate, ...],
        fields: list[ProjectField],
    ) -> list[BatchOutcome]:
        """Apply many field updates with aliased mutations.

        Updates are checked against the field schema first; invalid ones get a
        failure outcome without any request. Valid ones are sent in chunks of
        BATCH_MUTATION_SIZE, and per-alias errors are mapped back to their
        update. Outcomes are returned in input order.

        Raises:
            BatchUpdateError: If a chunk request as a whole fails. It carries
                the outcomes settled before that chunk.
        """
        outcomes: list[BatchOutcome | None] = [None] * len(updates)
        prepared: list[tuple[int, FieldUpdate, dict[str, Any], bool]] = []

        for index, update in enumerate(updates):
            try:
                field = _find_field(fields, update.field_name)
                input_vars = {
                    "projectId": project_id,
                    "itemId": update.item_id,
                    "fieldId": field.id,
                }
                if not update.is_clear:
                    input_vars["value"] = _update_value(field, update.value)
            except GitHubAPIError as e:
                outcomes[index] = BatchOutcome(
                    item_id=update.item_id,
                    field_name=update.field_name,
                    success=False,
                    error=str(e),
                )
                continue
            prepared.append((index, update, input_vars, update.is_clear))

        for start in range(0, len(prepared), BATCH_MUTATION_SIZE):
            chunk = prepared[start : start + BATCH_MUTATION_SIZE]
            declarations = []
            selections = []
            variables: dict[str, Any] = {}
            for position, (_, _, input_vars, is_clear) in enumerate(chunk):
                if is_clear:
                    input_type = "ClearProjectV2ItemFieldValueInput"
                    mutation = "clearProjectV2ItemFieldValue"
                else:
                    input_type = "UpdateProjectV2ItemFieldValueInput"
                    mutation = "updateProjectV2ItemFieldValue"
                declarations.append(f"$input{position}: {input_type}!")
                selections.append(
                    f"u{position}: {mutation}(input: $input{position}) "
                    "{ projectV2Item { id } }"
                )
                variables[f"input{position}"] = input_vars

            query = (
                f"mutation BatchUpdate({', '.join(declarations)}) "
                f"{{ {' '.join(selections)} }}"
            )
            logger.debug(
                "Sending batch mutation %d-%d of %d",
                start + 1,
                start + len(chunk),
                len(prepared),
            )
            try:
                body = self.graphql.request(query, variables, operation="batch update")
                errors = body.get("errors") or []
                if any(err.get("type") == "RATE_LIMITED" for err in errors):
                    raise graphql_error(errors, "batch update")
            except GitHubAPIError as e:
                settled = [outcome for outcome in outcomes if outcome is not None]
                raise BatchUpdateError(
                    f"chunk {start + 1}-{start + len(chunk)} failed: {e}",
                    outcomes=settled,
                    operation="batch update",
                    status_code=e.status_code,
                    retry_after=e.retry_after,
                ) from e
            data = body.get("data") or {}

            for position, (index, update, _, _) in enumerate(chunk):
                alias = f"u{position}"
                error = ""
                for err in errors:
                    path = err.get("path") or []
                    if path and path[0] == alias:
                        error = err.get("message", "unknown error")
                        break
                if not error and data.get(alias) is None and errors:
                    error = errors[0].get("message", "unknown error")
                outcomes[index] = BatchOutcome(
                    item_id=update.item_id,
                    field_name=update.field_name,
                    success=not error,
                    error=error,
                )

        return [outcome for outcome in outcomes if outcome is not None]
