"""Lookup table of project items keyed by fully-qualified issue key."""

import logging

from ..errors import GhBoardError
from ..github_client import BoardClient
from ..github_client.models import IssueRef, ProjectItem

logger = logging.getLogger(__name__)


class ProjectItemIndex:
    """Point-in-time snapshot of the project items relevant to a run."""

    def __init__(self, items: list[ProjectItem]):
        self._items: dict[str, ProjectItem] = {}
        for item in items:
            self._items.setdefault(item.issue.key, item)

    @classmethod
    def build(
        cls,
        client: BoardClient,
        project_id: str,
        refs: list[IssueRef],
        recursive: bool = False,
    ) -> "ProjectItemIndex":
        """Fetch the snapshot for a run.

        Recursive runs always fetch the whole project because descendants are
        not known yet. Otherwise only the requested issues are fetched, with a
        full fetch when the targeted query fails.
        """
        if recursive:
            return cls(client.get_project_items(project_id))

        try:
            items = client.get_project_items_by_refs(project_id, refs)
        except GhBoardError as e:
            logger.warning("Targeted item lookup failed, fetching all items: %s", e)
            items = client.get_project_items(project_id)
        return cls(items)

    def get(self, ref: IssueRef) -> ProjectItem | None:
        return self._items.get(ref.key)

    def item_id(self, ref: IssueRef) -> str | None:
        item = self.get(ref)
        return item.id if item else None

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, IssueRef) and ref.key in self._items

    def __len__(self) -> int:
        return len(self._items)
