"""Parse issue tokens given on the command line into IssueRefs."""

import re

from ..errors import UsageError
from ..github_client.models import IssueRef
from .errors import IssueReferenceError

_REFERENCE_PATTERN = re.compile(
    r"^(?:(?P<owner>[A-Za-z0-9_.-]+)/(?P<repo>[A-Za-z0-9_.-]+)#|#)?(?P<number>\d+)$"
)
_REPOSITORY_PATTERN = re.compile(r"^([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+)$")


def parse_repository(value: str) -> tuple[str, str]:
    """Parse ``owner/repo``.

    Raises:
        UsageError: If the value is not of the form owner/repo
    """
    match = _REPOSITORY_PATTERN.match(value.strip())
    if not match:
        raise UsageError(f"invalid repository {value!r}, expected owner/repo")
    return match.group(1), match.group(2)


def parse_issue_reference(
    token: str, default_repo: tuple[str, str] | None = None
) -> IssueRef:
    """Parse ``123``, ``#123`` or ``owner/repo#123``.

    Raises:
        IssueReferenceError: If the token is malformed or needs a default
            repository that is not available
    """
    text = token.strip()
    match = _REFERENCE_PATTERN.match(text)
    if not match:
        raise IssueReferenceError(token, "invalid issue reference")

    number = int(match.group("number"))
    if number <= 0:
        raise IssueReferenceError(token, "issue number must be positive")

    if match.group("owner"):
        return IssueRef(owner=match.group("owner"), repo=match.group("repo"), number=number)

    if default_repo is None:
        raise IssueReferenceError(f"#{number}", "no repository specified")
    owner, repo = default_repo
    return IssueRef(owner=owner, repo=repo, number=number)


def resolve_references(
    tokens: list[str], default_repo: tuple[str, str] | None = None
) -> tuple[list[IssueRef], list[IssueReferenceError]]:
    """Resolve every token, collecting errors instead of stopping at the first.

    Tokens resolving to the same issue are collapsed to their first occurrence.
    """
    refs: list[IssueRef] = []
    errors: list[IssueReferenceError] = []
    seen: set[IssueRef] = set()

    for token in tokens:
        try:
            ref = parse_issue_reference(token, default_repo)
        except IssueReferenceError as e:
            errors.append(e)
            continue
        if ref in seen:
            continue
        seen.add(ref)
        refs.append(ref)

    return refs, errors
