"""Tests for the project item index."""

from fakes import FakeBoardClient, make_item, ref

from gh_board.github_client.errors import GitHubAPIError
from gh_board.transition.index import ProjectItemIndex


class TestProjectItemIndex:
    """Test snapshot construction and lookups."""

    def test_targeted_fetch_for_non_recursive_runs(self) -> None:
        client = FakeBoardClient(items=[make_item(10), make_item(11), make_item(12)])

        index = ProjectItemIndex.build(client, "PVT_1", [ref(10), ref(12)])

        assert client.call_names() == ["get_project_items_by_refs"]
        assert index.item_id(ref(10)) == "item_10"
        assert index.item_id(ref(12)) == "item_12"
        assert ref(11) not in index
        assert len(index) == 2

    def test_targeted_fetch_failure_falls_back_to_full_fetch(self) -> None:
        client = FakeBoardClient(items=[make_item(10), make_item(11)])
        client.items_by_refs_error = GitHubAPIError("boom")

        index = ProjectItemIndex.build(client, "PVT_1", [ref(10)])

        assert client.call_names() == ["get_project_items_by_refs", "get_project_items"]
        assert ref(10) in index
        assert ref(11) in index

    def test_recursive_runs_always_fetch_everything(self) -> None:
        client = FakeBoardClient(items=[make_item(10), make_item(20)])

        index = ProjectItemIndex.build(client, "PVT_1", [ref(10)], recursive=True)

        assert client.call_names() == ["get_project_items"]
        assert ref(20) in index

    def test_first_item_wins_for_duplicate_keys(self) -> None:
        index = ProjectItemIndex(
            [make_item(10, item_id="first"), make_item(10, item_id="second")]
        )

        assert len(index) == 1
        assert index.item_id(ref(10)) == "first"

    def test_untracked_issue(self) -> None:
        index = ProjectItemIndex([make_item(10)])

        assert index.get(ref(99)) is None
        assert index.item_id(ref(99)) is None
        assert ref(10, repo="other") not in index
