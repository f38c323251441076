"""
Custom exceptions for the command queue runner.

Per-command failures (``LaunchFailure``, ``NonZeroExit``) are never raised by
the engine; they are handed to result handlers as the ``error`` argument.
"""

from typing import Optional, Any, Dict


class CmdQueueError(Exception):
    """Base exception for all command queue errors."""

    def __init__(
        self,
        message: str,
        *args: Any,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or "CMDQUEUE_ERROR"
        self.context = context or {}
        super().__init__(message, *args)

    def __str__(self) -> str:
        error_msg = f"[{self.error_code}] {self.message}"
        if self.context:
            error_msg += f"\nContext: {self.context}"
        return error_msg


class CommandError(CmdQueueError):
    """Base class for errors describing a single command run."""

    def __init__(
        self,
        message: str,
        command: str,
        working_directory: Any,
        error_code: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.command = command
        self.working_directory = working_directory
        full_context = {"command": command, "working_directory": working_directory}
        full_context.update(context or {})
        super().__init__(message, error_code=error_code, context=full_context)


class LaunchFailure(CommandError):
    """The command could not be started at all."""

    def __init__(self, command: str, working_directory: Any, cause: Exception):
        self.cause = cause
        super().__init__(
            f"Failed to launch command: {cause}",
            command,
            working_directory,
            error_code="LAUNCH_FAILURE",
            context={"cause": repr(cause)},
        )


class NonZeroExit(CommandError):
    """The command ran but exited with a failure status."""

    def __init__(
        self,
        command: str,
        working_directory: Any,
        exit_code: int,
        error_output: str = "",
        signal: Optional[int] = None,
    ):
        """Initialize with command details.

        Args:
            command: The command that failed
            working_directory: Directory the command ran in
            exit_code: The exit code from the command
            error_output: Error output from the command
            signal: Number of the signal that killed the process, if any
        """
        self.exit_code = exit_code
        self.error_output = error_output
        self.signal = signal

        if signal is not None:
            message = f"Command killed by signal {signal}"
        else:
            message = f"Command failed with exit code {exit_code}"
        if error_output:
            message = f"{message}\nError: {error_output.rstrip()}"

        super().__init__(
            message,
            command,
            working_directory,
            error_code="NON_ZERO_EXIT",
            context={"exit_code": exit_code, "signal": signal},
        )


class ConfigurationError(CmdQueueError):
    """Raised when an engine or a configuration file is invalid."""

    def __init__(self, message: str, *args: Any, config_path: Optional[str] = None):
        super().__init__(
            message,
            *args,
            error_code="CONFIG_ERROR",
            context={"config_path": config_path} if config_path else None,
        )


class ValidationError(CmdQueueError):
    """Raised when validation fails."""

    def __init__(self, message: str, field: str, value: Any, *args: Any):
        super().__init__(
            message,
            *args,
            error_code="VALIDATION_ERROR",
            context={"field": field, "value": value},
        )


class QueueBusyError(CmdQueueError):
    """Raised when ``process()`` is called while a drain is still running."""

    def __init__(self, name: str):
        super().__init__(
            f"Queue '{name}' is already processing",
            error_code="QUEUE_BUSY",
            context={"queue": name},
        )
