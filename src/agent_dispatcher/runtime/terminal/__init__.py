"""Agent process launching."""

from .launcher import SubprocessInvoker, add_tdd_hint

__all__ = ["SubprocessInvoker", "add_tdd_hint"]
