"""File-backed tracker storage."""

from .yaml_tracker import YamlTaskTracker

__all__ = ["YamlTaskTracker"]
