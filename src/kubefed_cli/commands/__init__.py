"""Click commands for kubefed-cli."""

from .init import init

__all__ = ["init"]
