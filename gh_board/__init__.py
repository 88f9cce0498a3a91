"""Bulk project-board field transitions for GitHub issues."""

__version__ = "0.1.0"
