"""Pydantic models for GitHub issue and Projects (v2) data.

Issue data maps to the REST API (https://docs.github.com/en/rest/issues);
project, field and item data maps to the Projects v2 GraphQL schema
(https://docs.github.com/en/graphql/reference/objects#projectv2).
"""

from pydantic import BaseModel, ConfigDict, Field

FIELD_TYPE_SINGLE_SELECT = "SINGLE_SELECT"
FIELD_TYPE_TEXT = "TEXT"
FIELD_TYPE_NUMBER = "NUMBER"
FIELD_TYPE_DATE = "DATE"


class IssueRef(BaseModel):
    """Fully-qualified reference to an issue. Hashable identity key."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., description="Repository owner login")
    repo: str = Field(..., description="Repository name")
    number: int = Field(..., description="Issue number within the repository")

    @property
    def key(self) -> str:
        """Render as ``owner/repo#number``."""
        return f"{self.owner}/{self.repo}#{self.number}"

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.key


class Issue(BaseModel):
    """GitHub issue as returned by the REST API."""

    number: int = Field(..., description="Issue number")
    title: str = Field(..., description="Issue title")
    body: str = Field("", description="Markdown body; empty when unset")
    state: str = Field("open", description="open or closed")
    url: str = Field("", description="HTML URL of the issue")
    owner: str = Field("", description="Repository owner login")
    repo: str = Field("", description="Repository name")
    labels: list[str] = Field(default_factory=list, description="Label names")

    @property
    def ref(self) -> IssueRef:
        return IssueRef(owner=self.owner, repo=self.repo, number=self.number)


class SubIssue(BaseModel):
    """Child issue linked to a parent through GitHub sub-issues."""

    number: int = Field(..., description="Child issue number")
    title: str = Field("", description="Child issue title")
    state: str = Field("OPEN", description="OPEN or CLOSED")
    url: str = Field("", description="HTML URL of the child issue")
    owner: str = Field(..., description="Owner of the child's repository")
    repo: str = Field(..., description="Name of the child's repository")

    @property
    def ref(self) -> IssueRef:
        return IssueRef(owner=self.owner, repo=self.repo, number=self.number)


class Project(BaseModel):
    """GitHub Projects (v2) board."""

    id: str = Field(..., description="GraphQL node id")
    number: int = Field(..., description="Project number")
    title: str = Field("", description="Project title")
    url: str = Field("", description="Project URL")
    owner: str = Field("", description="Owning user or organization login")


class FieldOption(BaseModel):
    """Option of a single-select project field."""

    id: str
    name: str


class ProjectField(BaseModel):
    """Custom field defined on a project."""

    id: str = Field(..., description="GraphQL node id of the field")
    name: str = Field(..., description="Field name as shown on the board")
    data_type: str = Field(
        ..., description="SINGLE_SELECT, TEXT, NUMBER, DATE, ITERATION, ..."
    )
    options: list[FieldOption] = Field(
        default_factory=list, description="Options for single-select fields"
    )

    def find_option(self, name: str) -> FieldOption | None:
        for option in self.options:
            if option.name == name:
                return option
        return None


class ProjectItem(BaseModel):
    """Issue tracked on a project, with its current field values."""

    id: str = Field(..., description="GraphQL node id of the project item")
    issue: IssueRef = Field(..., description="Issue the item points to")
    title: str = Field("", description="Issue title")
    body: str = Field("", description="Issue body")
    url: str = Field("", description="Issue URL")
    field_values: dict[str, str] = Field(
        default_factory=dict, description="Field name -> display value"
    )


class FieldUpdate(BaseModel):
    """One field change for one project item. Empty value clears the field."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    field_name: str
    value: str = ""

    @property
    def is_clear(self) -> bool:
        return self.value == ""


class BatchOutcome(BaseModel):
    """Result of applying a single FieldUpdate."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    field_name: str
    success: bool
    error: str = ""
