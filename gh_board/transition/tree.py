"""Depth-bounded, level-batched expansion of sub-issue trees."""

import logging

from ..errors import GhBoardError
from ..github_client import BoardClient
from ..github_client.models import IssueRef, SubIssue
from .index import ProjectItemIndex
from .models import CandidateIssue

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def candidate_from_index(
    ref: IssueRef, index: ProjectItemIndex, depth: int = 0, title: str = ""
) -> CandidateIssue | None:
    """Build a tracked candidate from the index, or None if untracked."""
    item = index.get(ref)
    if item is None:
        return None
    return CandidateIssue(
        ref=ref,
        title=item.title or title,
        body=item.body,
        url=item.url,
        item_id=item.id,
        depth=depth,
        field_values=tuple(item.field_values.items()),
    )


class SubIssueTreeExpander:
    """Expands root candidates into roots plus their descendants.

    Each level is fetched with one batch call per repository; a failed batch
    falls back to one call per parent. Issues already visited (including all
    roots) are skipped, so shared children and cycles appear once.
    """

    def __init__(
        self,
        client: BoardClient,
        index: ProjectItemIndex,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.client = client
        self.index = index
        self.max_depth = max(0, max_depth)

    def expand(self, roots: list[CandidateIssue]) -> list[CandidateIssue]:
        """Return roots in order, each followed by its expanded subtree."""
        visited: set[IssueRef] = {root.ref for root in roots}
        result: list[CandidateIssue] = []

        for root in roots:
            result.append(root)
            try:
                result.extend(self._expand_root(root, visited))
            except GhBoardError as e:
                logger.warning("Could not expand sub-issues of %s: %s", root.ref, e)
        return result

    def _expand_root(
        self, root: CandidateIssue, visited: set[IssueRef]
    ) -> list[CandidateIssue]:
        descendants: list[CandidateIssue] = []
        level = [root]

        while level:
            parents = [parent for parent in level if parent.depth < self.max_depth]
            if not parents:
                break

            children_by_parent = self._fetch_level(parents)
            next_level: list[CandidateIssue] = []
            for parent in parents:
                for child in children_by_parent.get(parent.ref, []):
                    ref = child.ref
                    if ref in visited:
                        continue
                    visited.add(ref)
                    candidate = self._candidate(child, parent.depth + 1)
                    descendants.append(candidate)
                    next_level.append(candidate)
            level = next_level

        return descendants

    def _fetch_level(
        self, parents: list[CandidateIssue]
    ) -> dict[IssueRef, list[SubIssue]]:
        groups: dict[tuple[str, str], list[int]] = {}
        for parent in parents:
            groups.setdefault((parent.ref.owner, parent.ref.repo), []).append(
                parent.ref.number
            )

        children: dict[IssueRef, list[SubIssue]] = {}
        for (owner, repo), numbers in groups.items():
            try:
                batch = self.client.get_sub_issues_batch(owner, repo, numbers)
            except GhBoardError as e:
                logger.warning(
                    "Batch sub-issue fetch failed for %s/%s, fetching one by one: %s",
                    owner,
                    repo,
                    e,
                )
                batch = {number: self._fetch_single(owner, repo, number) for number in numbers}

            for number in numbers:
                ref = IssueRef(owner=owner, repo=repo, number=number)
                children[ref] = batch.get(number, [])
        return children

    def _fetch_single(self, owner: str, repo: str, number: int) -> list[SubIssue]:
        try:
            return self.client.get_sub_issues(owner, repo, number)
        except GhBoardError as e:
            logger.warning(
                "Could not fetch sub-issues of %s/%s#%d: %s", owner, repo, number, e
            )
            return []

    def _candidate(self, child: SubIssue, depth: int) -> CandidateIssue:
        ref = child.ref
        tracked = candidate_from_index(ref, self.index, depth=depth, title=child.title)
        if tracked is not None:
            return tracked

        # Untracked children carry no body; they are skipped, never validated.
        return CandidateIssue(ref=ref, title=child.title, url=child.url, depth=depth)
