"""
Single-command execution on the asyncio event loop.
"""

import asyncio
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set, Union

from ..exceptions import CommandError, LaunchFailure, NonZeroExit
from ..logging import QueueLogger

ResultCallback = Callable[[Optional[CommandError], str, str], Any]


def noop_callback(error: Optional[CommandError], stdout: str, stderr: str) -> None:
    """Default result callback."""


class ExecutionStatus(Enum):
    """Status of command execution."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CommandResult:
    """Result of one command run."""

    command: str
    working_directory: Union[str, Path]
    status: ExecutionStatus = ExecutionStatus.PENDING
    exit_code: Optional[int] = None
    stdout: str = ""
    stderr: str = ""
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    error: Optional[CommandError] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ExecutionStatus.COMPLETED

    @property
    def duration(self) -> Optional[float]:
        """Get execution duration in seconds."""
        if self.start_time is not None and self.end_time is not None:
            return self.end_time - self.start_time
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary."""
        return {
            "command": self.command,
            "working_directory": str(self.working_directory),
            "status": self.status.value,
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "error": str(self.error) if self.error else None,
        }


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """Runs shell commands as subprocesses of the running event loop.

    The runner keeps no queue state. Each :meth:`run` call spawns exactly one
    subprocess and calls its callback exactly once. There is no timeout: a
    command that never exits never calls back.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self.env = env
        self.logger = QueueLogger().get_context_logger(
            runner_class=self.__class__.__name__
        )
        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    def run(
        self,
        command: str,
        working_directory: Union[str, Path],
        callback: Optional[ResultCallback] = None,
    ) -> asyncio.Task:
        """Start ``command`` and return without waiting for it.

        Args:
            command: Shell command line
            working_directory: Directory the shell starts in
            callback: Called with ``(error, stdout, stderr)`` on completion

        Returns:
            asyncio.Task: The task driving the subprocess

        Raises:
            RuntimeError: If no event loop is running
        """
        callback = callback or noop_callback
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_and_notify(command, working_directory, callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_and_notify(
        self,
        command: str,
        working_directory: Union[str, Path],
        callback: ResultCallback,
    ) -> CommandResult:
        try:
            result = await self.execute(command, working_directory)
        except Exception as e:
            self.logger.exception(
                "Command execution failed: %s",
                command,
                extra={"working_directory": working_directory},
            )
            result = CommandResult(
                command=command,
                working_directory=working_directory,
                status=ExecutionStatus.FAILED,
                error=CommandError(
                    f"Command execution failed: {e}",
                    command,
                    working_directory,
                    error_code="EXECUTION_ERROR",
                    context={"cause": repr(e)},
                ),
            )

        try:
            callback(result.error, result.stdout, result.stderr)
        except Exception:
            self.logger.exception(
                "Result callback raised for command: %s",
                command,
                extra={"working_directory": working_directory},
            )
        return result

    async def execute(
        self, command: str, working_directory: Union[str, Path]
    ) -> CommandResult:
        """Run ``command`` to completion and return its result.

        Failures are recorded on the result, never raised.
        """
        result = CommandResult(command=command, working_directory=working_directory)
        result.start_time = time.time()

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=working_directory,
                env=self.env,
            )
        except Exception as e:
            # OSError for a bad directory or permissions, ValueError for
            # embedded NUL bytes and the like.
            result.status = ExecutionStatus.FAILED
            result.error = LaunchFailure(command, working_directory, e)
            result.end_time = time.time()
            self.logger.warning(
                "Failed to launch command: %s",
                command,
                extra={"working_directory": working_directory, "cause": e},
            )
            return result

        result.status = ExecutionStatus.RUNNING
        self.logger.debug(
            "Started process %s: %s",
            process.pid,
            command,
            extra={"working_directory": working_directory},
        )

        stdout, stderr = await process.communicate()
        result.end_time = time.time()
        result.stdout = _decode(stdout)
        result.stderr = _decode(stderr)
        result.exit_code = process.returncode

        if process.returncode == 0:
            result.status = ExecutionStatus.COMPLETED
        else:
            result.status = ExecutionStatus.FAILED
            # Negative return codes mean the process was killed by a signal.
            signal_number = -process.returncode if process.returncode < 0 else None
            result.error = NonZeroExit(
                command,
                working_directory,
                exit_code=process.returncode,
                error_output=result.stderr,
                signal=signal_number,
            )
            self.logger.warning(
                "Command exited with code %s: %s",
                process.returncode,
                command,
                extra={"working_directory": working_directory},
            )

        return result
