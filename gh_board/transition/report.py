"""Console rendering for previews, confirmations and run summaries."""

from collections.abc import Callable

from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm

from .errors import ValidationErrors
from .models import CandidateIssue, IssueResult, IssueStatus, RunSummary, Verdict
from .validation import ValidationReport

Confirmer = Callable[[str], bool]


def default_confirmer(prompt: str) -> bool:
    return Confirm.ask(prompt, default=False)


class Reporter:
    """Writes every user-facing line of a move run."""

    def __init__(self, console: Console | None = None, confirmer: Confirmer | None = None):
        self.console = console or Console()
        self.confirmer = confirmer or default_confirmer

    def preview(
        self,
        candidates: list[CandidateIssue],
        changes: list[str],
        report: ValidationReport | None = None,
        dry_run: bool = False,
    ) -> None:
        """List the issues and changes; in dry-run also show verdicts."""
        self.console.print(f"Issues to update ({len(candidates)}):")
        for candidate in candidates:
            indent = "  " * (candidate.depth + 1)
            line = f"{indent}* #{candidate.number} - {escape(candidate.title)}"
            if not candidate.is_tracked:
                line += " (not in project, will skip)"
            elif dry_run and report is not None:
                verdict = report.verdict_for(candidate)
                if verdict.verdict == Verdict.FAIL:
                    reason = "; ".join(r.splitlines()[0] for r in verdict.reasons)
                    line += " " + escape(f"[FAIL: {reason}]")
                elif verdict.verdict == Verdict.PASS_FORCE:
                    line += " " + escape("[PASS with --force]")
            self.console.print(line)

        self.console.print()
        self.console.print("Changes to apply:")
        for change in changes:
            self.console.print(f"  {escape(change)}")

        if dry_run and report is not None:
            self.console.print()
            if report.passed:
                self.console.print("Validation: PASS")
            else:
                self.console.print("[red]Validation would FAIL:[/red]")
                self.validation_errors(report.errors)

    def validation_errors(self, errors: ValidationErrors) -> None:
        for error in errors:
            self.console.print(f"  - Issue #{error.issue_number}: {escape(error.message)}")
            if error.suggestion:
                self.console.print(f"    {escape(error.suggestion)}")

    def validation_failed(self, errors: ValidationErrors) -> None:
        self.console.print(
            f"❌ [red]Error: validation failed for {len(errors)} issue rule(s); "
            "no changes were made[/red]"
        )
        self.validation_errors(errors)

    def confirm_update(self, count: int) -> bool:
        return self.confirmer(f"Proceed with updating {count} issues?")

    def force_warnings(self, warnings: list[str]) -> None:
        self.console.print("⚠️  [yellow]Checklist validation bypassed with --force:[/yellow]")
        for warning in warnings:
            self.console.print(f"  {escape(warning)}")

    def confirm_force(self) -> bool:
        return self.confirmer("Proceed anyway?")

    def aborted(self) -> None:
        self.console.print("Aborted.")

    def issue_result(self, result: IssueResult) -> None:
        if result.status == IssueStatus.UPDATED:
            status = "[green]done[/green]"
        elif result.status == IssueStatus.FAILED:
            status = "[red]failed[/red]"
        else:
            status = "skipped (not in project)"
        self.console.print(f"Updating #{result.issue.number}... {status}")
        for error in result.errors:
            self.console.print(f"  {escape(error)}")

    def summary(self, summary: RunSummary) -> None:
        self.console.print()
        self.console.print(
            f"Summary: {summary.updated} updated, {summary.skipped} skipped, "
            f"{summary.failed} failed"
        )

    def single_issue(self, result: IssueResult, changes: list[str]) -> None:
        """Report for one non-recursive issue."""
        issue = result.issue
        if result.status == IssueStatus.SKIPPED:
            self.console.print(f"Issue #{issue.number} is not in the project, skipped")
            return
        if result.status == IssueStatus.FAILED:
            for error in result.errors:
                self.console.print(f"❌ [red]Error: {escape(error)}[/red]")
            return

        self.console.print(f"Updated issue #{issue.number}: {escape(issue.title)}")
        for change in changes:
            self.console.print(f"  {escape(change)}")
        if issue.url:
            self.console.print(issue.url)

    def reference_errors(self, errors: list[str]) -> None:
        for error in errors:
            self.console.print(f"❌ [red]Error: {escape(error)}[/red]")

    def force_used(self) -> None:
        self.console.print(
            "⚠️  [yellow]WARNING: Workflow rules may have been violated.[/yellow]"
        )
