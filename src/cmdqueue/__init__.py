"""
Shell command queues with sequential and concurrent draining.
"""

from .engine import CommandEntry, QueueEngine, QueueMode
from .events import CommandEvent, EventEmitter, QueueEvent
from .exceptions import (
    CmdQueueError,
    CommandError,
    ConfigurationError,
    LaunchFailure,
    NonZeroExit,
    QueueBusyError,
    ValidationError,
)
from .execution import CommandResult, ExecutionStatus, ProcessRunner

__version__ = "0.1.0"

__all__ = [
    "CommandEntry",
    "QueueEngine",
    "QueueMode",
    "CommandEvent",
    "EventEmitter",
    "QueueEvent",
    "CmdQueueError",
    "CommandError",
    "ConfigurationError",
    "LaunchFailure",
    "NonZeroExit",
    "QueueBusyError",
    "ValidationError",
    "CommandResult",
    "ExecutionStatus",
    "ProcessRunner",
]
