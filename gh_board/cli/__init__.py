"""Command-line interface for gh-board."""
