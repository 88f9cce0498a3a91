"""GitHub API error types and classification helpers.

The helpers accept any exception (PyGithub, httpx or our own wrappers) and
inspect the whole ``__cause__`` chain, so a wrapped transport failure is
classified the same as the raw one.
"""

from collections.abc import Iterator
from typing import Any

import httpx
from github.GithubException import (
    BadCredentialsException,
    GithubException,
    RateLimitExceededException,
    UnknownObjectException,
)

from ..errors import GhBoardError


class GitHubAPIError(GhBoardError):
    """A failed GitHub API call, with operation and resource context."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        resource: str = "",
        status_code: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource = resource
        self.status_code = status_code
        self.retry_after = retry_after

    def __str__(self) -> str:
        context = " ".join(part for part in (self.operation, self.resource) if part)
        if context:
            return f"{context}: {self.message}"
        return self.message


class RateLimitError(GitHubAPIError):
    """Primary or secondary rate limit exceeded."""


class NotFoundError(GitHubAPIError):
    """Requested resource does not exist or is not visible to the token."""


class AuthenticationError(GitHubAPIError):
    """Token missing, invalid or lacking scope."""


class GraphQLError(GitHubAPIError):
    """GraphQL response carried an ``errors`` payload."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class BatchUpdateError(GitHubAPIError):
    """A batch mutation request failed part way through.

    ``outcomes`` holds the results already settled before the failing chunk
    (applied chunks and updates rejected by the field schema). Updates without
    an outcome were never applied.
    """

    def __init__(self, message: str, outcomes: list[Any] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.outcomes = list(outcomes or [])


def _chain(exc: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        yield exc
        exc = exc.__cause__


def _status_code(exc: BaseException) -> int | None:
    if isinstance(exc, GitHubAPIError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, GithubException):
        return exc.status
    return None


def is_rate_limited(exc: BaseException | None) -> bool:
    """Return True for 429s, 403s with rate-limit text and RATE_LIMITED errors.

    A 403 without rate-limit wording (permission denied) is not a rate limit.
    """
    for err in _chain(exc):
        if isinstance(err, (RateLimitError, RateLimitExceededException)):
            return True

        code = _status_code(err)
        if code == 429:
            return True
        if code == 403:
            text = str(err).lower()
            return "rate limit" in text or "rate_limited" in text

        text = str(err)
        if "rate limit" in text or "RATE_LIMITED" in text:
            return True
    return False


def is_not_found(exc: BaseException | None) -> bool:
    for err in _chain(exc):
        if isinstance(err, (NotFoundError, UnknownObjectException)):
            return True
        if _status_code(err) == 404:
            return True
        text = str(err)
        if "Could not resolve" in text or "NOT_FOUND" in text:
            return True
    return False


def is_auth_error(exc: BaseException | None) -> bool:
    for err in _chain(exc):
        if isinstance(err, (AuthenticationError, BadCredentialsException)):
            return True
        if _status_code(err) == 401:
            return True
        text = str(err).lower()
        if "authentication" in text or "not authenticated" in text:
            return True
    return False


def is_transient(exc: BaseException | None) -> bool:
    """Return True for connection-level failures (timeouts, resets)."""
    return any(isinstance(err, httpx.TransportError) for err in _chain(exc))


def is_retryable(exc: BaseException | None) -> bool:
    return is_rate_limited(exc) or is_transient(exc)


def _parse_retry_after(value: Any) -> float | None:
    if value is None:
        return None
    try:
        seconds = int(str(value).strip())
    except ValueError:
        return None
    return float(seconds) if seconds > 0 else None


def retry_after_seconds(exc: BaseException | None) -> float | None:
    """Extract a Retry-After delay in seconds, if the error carries one."""
    for err in _chain(exc):
        if isinstance(err, GitHubAPIError) and err.retry_after:
            return err.retry_after
        if isinstance(err, httpx.HTTPStatusError):
            value = _parse_retry_after(err.response.headers.get("Retry-After"))
            if value:
                return value
        if isinstance(err, GithubException) and err.headers:
            headers = {k.lower(): v for k, v in err.headers.items()}
            value = _parse_retry_after(headers.get("retry-after"))
            if value:
                return value
    return None


def wrap_error(operation: str, resource: str, exc: BaseException) -> GitHubAPIError:
    """Wrap a raw exception into the matching GitHubAPIError subclass.

    Callers raise the result ``from exc`` so classification helpers can still
    see the original exception.
    """
    status_code = None
    for err in _chain(exc):
        status_code = _status_code(err)
        if status_code is not None:
            break

    kwargs: dict[str, Any] = {
        "operation": operation,
        "resource": resource,
        "status_code": status_code,
        "retry_after": retry_after_seconds(exc),
    }

    if is_rate_limited(exc):
        return RateLimitError("API rate limit exceeded", **kwargs)
    if is_not_found(exc):
        return NotFoundError("resource not found", **kwargs)
    if is_auth_error(exc):
        return AuthenticationError(f"authentication failed: {exc}", **kwargs)
    return GitHubAPIError(str(exc), **kwargs)
