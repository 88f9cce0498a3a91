"""Errors raised while planning and validating a bulk transition."""

from collections.abc import Iterator

from ..errors import GhBoardError


class IssueReferenceError(GhBoardError):
    """A single issue token could not be resolved."""

    def __init__(self, token: str, message: str):
        super().__init__(f"{token}: {message}")
        self.token = token
        self.message = message


class TrackerLookupError(GhBoardError):
    """No active sprint or branch tracker could be found."""


class NoValidIssuesError(GhBoardError):
    """Nothing is left to update after reference resolution."""


class ValidationError(GhBoardError):
    """A workflow rule rejected the transition of one issue."""

    def __init__(self, issue_number: int, message: str, suggestion: str = ""):
        super().__init__(message)
        self.issue_number = issue_number
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"Issue #{self.issue_number}: {self.message}\n\n{self.suggestion}"
        return f"Issue #{self.issue_number}: {self.message}"


class ValidationErrors(GhBoardError):
    """Ordered collection of validation failures. Empty means no errors."""

    def __init__(self, errors: list[ValidationError] | None = None):
        super().__init__()
        self.errors: list[ValidationError] = list(errors or [])

    def add(self, error: ValidationError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[ValidationError]:
        return iter(self.errors)

    def __str__(self) -> str:
        if not self.errors:
            return ""
        if len(self.errors) == 1:
            return str(self.errors[0])

        lines = [f"Validation failed for {len(self.errors)} issues:", ""]
        lines.extend(
            f"  - Issue #{err.issue_number}: {err.message}" for err in self.errors
        )
        return "\n".join(lines)
