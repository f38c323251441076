"""
Command execution package.
"""

from .runner import CommandResult, ExecutionStatus, ProcessRunner

__all__ = ["CommandResult", "ExecutionStatus", "ProcessRunner"]
