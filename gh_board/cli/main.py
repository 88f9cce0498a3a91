"""Main CLI entry point."""

import typer
from dotenv import load_dotenv
from rich.console import Console

from .move import move

load_dotenv()

app = typer.Typer(
    name="gh-board",
    help="Bulk status, priority, sprint and branch updates for GitHub project boards",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()


app.command(name="move", context_settings={"help_option_names": ["-h", "--help"]})(
    move
)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from gh_board import __version__

    console.print(f"gh-board v{__version__}")


if __name__ == "__main__":
    app()
