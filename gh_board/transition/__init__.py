"""Bulk transition engine for project board fields."""

from .engine import MoveOptions, TransitionEngine
from .report import Reporter
from .targets import TargetRequest

__all__ = ["MoveOptions", "Reporter", "TargetRequest", "TransitionEngine"]
