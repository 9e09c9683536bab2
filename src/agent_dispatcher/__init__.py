"""Dispatch tracker tasks to detached coding agents and react to their hook notifications."""

__version__ = "0.1.0"
