"""Tests for GitHub client."""

import json
import os
from unittest.mock import Mock, patch

import httpx
import pytest
from github.GithubException import UnknownObjectException

from gh_board.github_client.client import BATCH_MUTATION_SIZE, GitHubClient
from gh_board.github_client.errors import (
    BatchUpdateError,
    GitHubAPIError,
    NotFoundError,
    RateLimitError,
    is_rate_limited,
)
from gh_board.github_client.models import (
    FieldOption,
    FieldUpdate,
    IssueRef,
    ProjectField,
)

FIELDS = [
    ProjectField(
        id="F_status",
        name="Status",
        data_type="SINGLE_SELECT",
        options=[FieldOption(id="opt_done", name="Done"), FieldOption(id="opt_ready", name="Ready")],
    ),
    ProjectField(id="F_branch", name="Branch", data_type="TEXT"),
    ProjectField(id="F_points", name="Points", data_type="NUMBER"),
    ProjectField(id="F_due", name="Due", data_type="DATE"),
]


class GraphQLStub:
    """Serves queued GraphQL bodies and records each request payload."""

    def __init__(self, *bodies: dict):
        self.bodies = list(bodies)
        self.requests: list[dict] = []
        self.headers: list[httpx.Headers] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        self.headers.append(request.headers)
        return httpx.Response(200, json=self.bodies.pop(0))


def make_client(stub: GraphQLStub | None = None) -> GitHubClient:
    transport = httpx.MockTransport(stub or GraphQLStub())
    return GitHubClient(token="test_token", transport=transport)


def mock_issue(number: int, title: str = "Title", pull_request=None) -> Mock:
    issue = Mock()
    issue.number = number
    issue.title = title
    issue.body = "Body"
    issue.state = "open"
    issue.html_url = f"https://github.com/acme/api/issues/{number}"
    issue.labels = []
    issue.pull_request = pull_request
    return issue


class TestInit:
    """Test GitHubClient construction."""

    @patch.dict(os.environ, {"GITHUB_TOKEN": "test_token"})
    def test_init_with_env_token(self) -> None:
        with patch("gh_board.github_client.client.Github") as mock_github:
            client = GitHubClient()

        assert client.token == "test_token"
        assert mock_github.call_args.kwargs["auth"].token == "test_token"

    @patch.dict(os.environ, {"GH_TOKEN": "gh_cli_token"})
    def test_init_with_gh_token(self) -> None:
        with patch("gh_board.github_client.client.Github"):
            assert GitHubClient().token == "gh_cli_token"

    def test_init_without_token(self) -> None:
        with pytest.raises(ValueError, match="GitHub token is required"):
            GitHubClient()


@patch("gh_board.github_client.client.Github")
class TestProjects:
    """Test project, field and item queries."""

    def test_get_project_falls_back_to_user(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {"errors": [{"type": "NOT_FOUND", "message": "Could not resolve to an Organization"}]},
            {"data": {"user": {"projectV2": {"id": "PVT_9", "number": 3, "title": "Board"}}}},
        )

        project = make_client(stub).get_project("someone", 3)

        assert project.id == "PVT_9"
        assert project.owner == "someone"
        assert "organization(login: $owner)" in stub.requests[0]["query"]
        assert "user(login: $owner)" in stub.requests[1]["query"]

    def test_get_project_not_found(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {"data": {"organization": {"projectV2": None}}},
            {"data": {"user": {"projectV2": None}}},
        )

        with pytest.raises(NotFoundError, match="project not found"):
            make_client(stub).get_project("acme", 99)

    def test_get_project_fields_paginates(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {
                    "node": {
                        "fields": {
                            "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
                            "nodes": [
                                {
                                    "id": "F_status",
                                    "name": "Status",
                                    "dataType": "SINGLE_SELECT",
                                    "options": [{"id": "o1", "name": "Done"}],
                                },
                                {},
                            ],
                        }
                    }
                }
            },
            {
                "data": {
                    "node": {
                        "fields": {
                            "pageInfo": {"hasNextPage": False},
                            "nodes": [{"id": "F_branch", "name": "Branch", "dataType": "TEXT"}],
                        }
                    }
                }
            },
        )

        fields = make_client(stub).get_project_fields("PVT_1")

        assert [f.name for f in fields] == ["Status", "Branch"]
        assert fields[0].find_option("Done").id == "o1"
        assert stub.requests[1]["variables"]["cursor"] == "c1"

    def test_get_project_items_skips_non_issues(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {
                    "node": {
                        "items": {
                            "pageInfo": {"hasNextPage": False},
                            "nodes": [
                                {
                                    "id": "item_1",
                                    "content": {
                                        "number": 1,
                                        "title": "One",
                                        "body": "",
                                        "url": "u1",
                                        "repository": {"name": "api", "owner": {"login": "acme"}},
                                    },
                                    "fieldValues": {
                                        "nodes": [
                                            {"name": "Done", "field": {"name": "Status"}},
                                            {"number": 3.0, "field": {"name": "Points"}},
                                            {"text": "v2", "field": {"name": "Branch"}},
                                            {},
                                        ]
                                    },
                                },
                                {"id": "draft", "content": {}},
                            ],
                        }
                    }
                }
            }
        )

        items = make_client(stub).get_project_items("PVT_1")

        assert len(items) == 1
        assert items[0].issue.key == "acme/api#1"
        assert items[0].field_values == {"Status": "Done", "Points": "3", "Branch": "v2"}

    def test_get_project_items_by_refs(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {
                    "repository": {
                        "i1": {
                            "number": 1,
                            "title": "One",
                            "body": "text",
                            "url": "u1",
                            "projectItems": {
                                "nodes": [
                                    {"id": "other", "project": {"id": "PVT_2"}},
                                    {
                                        "id": "item_1",
                                        "project": {"id": "PVT_1"},
                                        "fieldValues": {"nodes": []},
                                    },
                                ]
                            },
                        },
                        "i2": {"number": 2, "projectItems": {"nodes": []}},
                        "i404": None,
                    }
                },
                "errors": [{"type": "NOT_FOUND", "path": ["repository", "i404"], "message": "x"}],
            }
        )
        refs = [IssueRef(owner="acme", repo="api", number=n) for n in (1, 2, 404, 1)]

        items = make_client(stub).get_project_items_by_refs("PVT_1", refs)

        assert [(i.id, i.issue.number) for i in items] == [("item_1", 1)]
        assert len(stub.requests) == 1
        assert stub.requests[0]["query"].count("issue(number: 1)") == 1

    def test_get_project_items_by_refs_other_errors_raise(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub({"errors": [{"type": "FORBIDDEN", "message": "no access"}]})

        with pytest.raises(GitHubAPIError, match="no access"):
            make_client(stub).get_project_items_by_refs(
                "PVT_1", [IssueRef(owner="acme", repo="api", number=1)]
            )


@patch("gh_board.github_client.client.Github")
class TestIssues:
    """Test REST issue reads."""

    def test_get_issue(self, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.rate_limiting = (5000, 5000)
        mock_github.get_repo.return_value.get_issue.return_value = mock_issue(7, "Seven")
        mock_github_class.return_value = mock_github

        issue = make_client().get_issue("acme", "api", 7)

        assert issue.title == "Seven"
        assert issue.ref.key == "acme/api#7"
        mock_github.get_repo.assert_called_once_with("acme/api")

    def test_get_issue_not_found(self, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.rate_limiting = (5000, 5000)
        mock_github.get_repo.return_value.get_issue.side_effect = UnknownObjectException(
            404, {"message": "Not Found"}, None
        )
        mock_github_class.return_value = mock_github

        with pytest.raises(NotFoundError):
            make_client().get_issue("acme", "api", 7)

    def test_open_issues_by_label_skip_pull_requests(self, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.rate_limiting = (5000, 5000)
        mock_github.get_repo.return_value.get_issues.return_value = [
            mock_issue(1, "Branch: v2"),
            mock_issue(2, "PR", pull_request=Mock()),
        ]
        mock_github_class.return_value = mock_github

        issues = make_client().get_open_issues_by_label("acme", "api", "branch")

        assert [i.number for i in issues] == [1]
        mock_github.get_repo.return_value.get_issues.assert_called_once_with(
            state="open", labels=["branch"]
        )

    @patch("time.sleep")
    def test_low_rate_limit_sleeps(self, mock_sleep: Mock, mock_github_class: Mock) -> None:
        mock_github = Mock()
        mock_github.rate_limiting = (5, 5000)
        mock_github.rate_limiting_resettime = 0
        mock_github.get_repo.return_value.get_issue.return_value = mock_issue(7)
        mock_github_class.return_value = mock_github

        with patch("time.time", return_value=-10):
            make_client().get_issue("acme", "api", 7)

        mock_sleep.assert_called_once_with(11)


def sub_issue_node(number: int) -> dict:
    return {
        "number": number,
        "title": f"Child {number}",
        "state": "OPEN",
        "url": f"u{number}",
        "repository": {"name": "api", "owner": {"login": "acme"}},
    }


@patch("gh_board.github_client.client.Github")
class TestSubIssues:
    """Test sub-issue queries."""

    def test_get_sub_issues_paginates_with_feature_header(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {
                    "repository": {
                        "issue": {
                            "subIssues": {
                                "pageInfo": {"hasNextPage": True, "endCursor": "c1"},
                                "nodes": [sub_issue_node(2)],
                            }
                        }
                    }
                }
            },
            {
                "data": {
                    "repository": {
                        "issue": {
                            "subIssues": {
                                "pageInfo": {"hasNextPage": False},
                                "nodes": [sub_issue_node(3)],
                            }
                        }
                    }
                }
            },
        )

        children = make_client(stub).get_sub_issues("acme", "api", 1)

        assert [c.number for c in children] == [2, 3]
        assert children[0].ref.key == "acme/api#2"
        assert stub.headers[0]["GraphQL-Features"] == "sub_issues"

    def test_get_sub_issues_missing_parent(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub({"data": {"repository": {"issue": None}}})

        with pytest.raises(NotFoundError):
            make_client(stub).get_sub_issues("acme", "api", 1)

    def test_batch_completes_paged_parents(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {
                    "repository": {
                        "i1": {
                            "subIssues": {
                                "pageInfo": {"hasNextPage": False},
                                "nodes": [sub_issue_node(10)],
                            }
                        },
                        "i2": {
                            "subIssues": {
                                "pageInfo": {"hasNextPage": True, "endCursor": "c"},
                                "nodes": [sub_issue_node(20)],
                            }
                        },
                        "i3": None,
                    }
                }
            },
            {
                "data": {
                    "repository": {
                        "issue": {
                            "subIssues": {
                                "pageInfo": {"hasNextPage": False},
                                "nodes": [sub_issue_node(20), sub_issue_node(21)],
                            }
                        }
                    }
                }
            },
        )

        result = make_client(stub).get_sub_issues_batch("acme", "api", [1, 2, 3])

        assert {n: [c.number for c in kids] for n, kids in result.items()} == {
            1: [10],
            2: [20, 21],
            3: [],
        }
        assert len(stub.requests) == 2

    def test_batch_empty(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub()

        assert make_client(stub).get_sub_issues_batch("acme", "api", []) == {}
        assert stub.requests == []


@patch("gh_board.github_client.client.Github")
class TestFieldMutations:
    """Test single and batched field updates."""

    def test_set_single_select(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub({"data": {"updateProjectV2ItemFieldValue": {}}})

        make_client(stub).set_field_value("PVT_1", "item_1", "Status", "Done", FIELDS)

        variables = stub.requests[0]["variables"]["input"]
        assert variables == {
            "projectId": "PVT_1",
            "itemId": "item_1",
            "fieldId": "F_status",
            "value": {"singleSelectOptionId": "opt_done"},
        }

    def test_empty_value_clears(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub({"data": {"clearProjectV2ItemFieldValue": {}}})

        make_client(stub).set_field_value("PVT_1", "item_1", "Branch", "", FIELDS)

        assert "clearProjectV2ItemFieldValue" in stub.requests[0]["query"]
        assert "value" not in stub.requests[0]["variables"]["input"]

    @pytest.mark.parametrize(
        "field,value,message",
        [
            ("Status", "done", 'option "done" not found'),
            ("Points", "many", "invalid number"),
            ("Due", "14/03/2025", "invalid date format"),
            ("Missing", "x", 'field "Missing" not found'),
        ],
    )
    def test_invalid_values_make_no_request(
        self, mock_github_class: Mock, field: str, value: str, message: str
    ) -> None:
        stub = GraphQLStub()

        with pytest.raises(GitHubAPIError, match=message):
            make_client(stub).set_field_value("PVT_1", "item_1", field, value, FIELDS)

        assert stub.requests == []

    def test_batch_maps_errors_by_alias(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {
                "data": {"u0": {"projectV2Item": {"id": "item_1"}}, "u1": None, "u2": {}},
                "errors": [{"path": ["u1"], "message": "item was deleted"}],
            }
        )
        updates = [
            FieldUpdate(item_id="item_1", field_name="Status", value="Done"),
            FieldUpdate(item_id="item_2", field_name="Status", value="Done"),
            FieldUpdate(item_id="item_2", field_name="Nope", value="x"),
            FieldUpdate(item_id="item_3", field_name="Branch"),
        ]

        outcomes = make_client(stub).batch_update_fields("PVT_1", updates, FIELDS)

        assert [(o.item_id, o.field_name, o.success) for o in outcomes] == [
            ("item_1", "Status", True),
            ("item_2", "Status", False),
            ("item_2", "Nope", False),
            ("item_3", "Branch", True),
        ]
        assert outcomes[1].error == "item was deleted"
        assert 'field "Nope" not found' in outcomes[2].error

        request = stub.requests[0]
        assert "u2: clearProjectV2ItemFieldValue(input: $input2)" in request["query"]
        assert set(request["variables"]) == {"input0", "input1", "input2"}

    def test_batch_chunks(self, mock_github_class: Mock) -> None:
        total = BATCH_MUTATION_SIZE + 5
        stub = GraphQLStub(
            {"data": {f"u{i}": {} for i in range(BATCH_MUTATION_SIZE)}},
            {"data": {f"u{i}": {} for i in range(5)}},
        )
        updates = [
            FieldUpdate(item_id=f"item_{n}", field_name="Branch", value="v2") for n in range(total)
        ]

        outcomes = make_client(stub).batch_update_fields("PVT_1", updates, FIELDS)

        assert len(stub.requests) == 2
        assert len(outcomes) == total
        assert all(o.success for o in outcomes)

    def test_batch_rate_limited_raises(self, mock_github_class: Mock) -> None:
        stub = GraphQLStub(
            {"errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]}
        )
        updates = [FieldUpdate(item_id="item_1", field_name="Branch", value="v2")]

        with pytest.raises(BatchUpdateError) as exc_info:
            make_client(stub).batch_update_fields("PVT_1", updates, FIELDS)

        assert isinstance(exc_info.value.__cause__, RateLimitError)
        assert is_rate_limited(exc_info.value)
        assert exc_info.value.outcomes == []

    def test_failed_chunk_keeps_settled_outcomes(self, mock_github_class: Mock) -> None:
        posts: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            posts.append(json.loads(request.content))
            if len(posts) == 2:
                return httpx.Response(502, text="Bad Gateway")
            data = {f"u{i}": {} for i in range(BATCH_MUTATION_SIZE)}
            return httpx.Response(200, json={"data": data})

        updates = [FieldUpdate(item_id="item_bad", field_name="Nope", value="x")] + [
            FieldUpdate(item_id=f"item_{n}", field_name="Branch", value="v2")
            for n in range(BATCH_MUTATION_SIZE + 10)
        ]
        client = GitHubClient(token="test_token", transport=httpx.MockTransport(handler))

        with pytest.raises(BatchUpdateError) as exc_info:
            client.batch_update_fields("PVT_1", updates, FIELDS)

        settled = exc_info.value.outcomes
        assert len(posts) == 2
        assert exc_info.value.status_code == 502
        assert len(settled) == BATCH_MUTATION_SIZE + 1
        assert not settled[0].success
        assert all(o.success for o in settled[1:])
        expected = [f"item_{n}" for n in range(BATCH_MUTATION_SIZE)]
        assert [o.item_id for o in settled[1:]] == expected
