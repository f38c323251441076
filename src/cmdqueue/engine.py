"""
Queue engine: drains queued shell commands sequentially or concurrently.

A ``QueueEngine`` owns a FIFO of :class:`CommandEntry` objects and hands them
to a runner (``ProcessRunner`` by default). Its lifecycle is reported through
an :class:`~cmdqueue.events.EventEmitter`:

- ``queue-begin``: ``process()`` was called (payload: engine name)
- ``command-start``: a command is about to be dispatched
- ``command-done``: a command's completion was handled
- ``all-dispatched``: concurrent mode only, every entry has been dispatched
- ``queue-complete``: nothing is in flight any more (payload: engine name)

Concurrent mode spawns every queued command at once. There is no cap on the
number of simultaneous subprocesses.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Any, Deque, List, Optional, Set, Tuple, Union

from .events import CommandEvent, EventEmitter, Listener, QueueEvent
from .exceptions import (
    CommandError,
    ConfigurationError,
    LaunchFailure,
    NonZeroExit,
    QueueBusyError,
    ValidationError,
)
from .execution.runner import (
    CommandResult,
    ExecutionStatus,
    ProcessRunner,
    ResultCallback,
    noop_callback,
)
from .logging import QueueLogger


class QueueMode(str, Enum):
    """How a queue engine drains its entries."""

    SEQUENTIAL = "sequential"
    CONCURRENT = "concurrent"


def _exit_code(error: Optional[CommandError]) -> Optional[int]:
    if error is None:
        return 0
    if isinstance(error, NonZeroExit):
        return error.exit_code
    return None


@dataclass(eq=False)
class CommandEntry:
    """One queued command and the handler for its result."""

    command: str
    working_directory: Union[str, Path]
    result_handler: ResultCallback = field(default=noop_callback)


class QueueEngine:
    """A named batch of shell commands.

    Args:
        name: Identifier carried in every emitted event
        mode: ``QueueMode`` or its string value, fixed for the engine's lifetime
        runner: Object with ``run(command, working_directory, callback)``;
            defaults to a new :class:`ProcessRunner`

    Raises:
        ConfigurationError: If the name, mode or runner is invalid
    """

    def __init__(
        self,
        name: str,
        mode: Union[QueueMode, str] = QueueMode.SEQUENTIAL,
        runner: Optional[Any] = None,
    ):
        if not isinstance(name, str) or not name.strip():
            raise ConfigurationError(f"Queue name must be a non-empty string: {name!r}")
        try:
            mode = QueueMode(mode)
        except ValueError as e:
            raise ConfigurationError(
                f"Invalid queue mode {mode!r}, expected one of "
                f"{[m.value for m in QueueMode]}"
            ) from e
        runner = runner if runner is not None else ProcessRunner()
        if not callable(getattr(runner, "run", None)):
            raise ConfigurationError(
                f"Runner {runner!r} does not provide a callable run() method"
            )

        self._name = name
        self._mode = mode
        self.runner = runner
        self.events = EventEmitter(engine=name)
        self.logger = QueueLogger().get_context_logger(engine=name, mode=mode.value)

        self._pending: Deque[CommandEntry] = deque()
        self._in_flight: Set[CommandEntry] = set()
        self._outstanding = 0
        self._draining = False
        self._dispatching = False
        self._results: List[CommandResult] = []

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self._name!r}, mode={self._mode.value}, "
            f"pending={len(self._pending)}, outstanding={self._outstanding})"
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def mode(self) -> QueueMode:
        return self._mode

    @property
    def pending(self) -> Tuple[CommandEntry, ...]:
        """Snapshot of the entries not yet dispatched, head first."""
        return tuple(self._pending)

    @property
    def outstanding(self) -> int:
        """Number of dispatched entries whose completion is still awaited."""
        return self._outstanding

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def results(self) -> List[CommandResult]:
        """Results of the current or last cycle, in completion order."""
        return list(self._results)

    def on(self, event: Union[QueueEvent, str], listener: Listener) -> Listener:
        return self.events.on(event, listener)

    def once(self, event: Union[QueueEvent, str], listener: Listener) -> Listener:
        return self.events.once(event, listener)

    def off(self, event: Union[QueueEvent, str], listener: Listener) -> bool:
        return self.events.off(event, listener)

    def enqueue(
        self,
        command: str,
        working_directory: Union[str, Path],
        result_handler: Optional[ResultCallback] = None,
    ) -> CommandEntry:
        """Append a command to the queue.

        Args:
            command: Shell command line, passed to the runner untouched
            working_directory: Directory the command runs in
            result_handler: Called with ``(error, stdout, stderr)`` when the
                command finishes

        Returns:
            CommandEntry: The queued entry
        """
        if not isinstance(command, str) or not command.strip():
            raise ValidationError(
                "Command must be a non-empty string", field="command", value=command
            )
        if result_handler is not None and not callable(result_handler):
            raise ValidationError(
                "Result handler must be callable",
                field="result_handler",
                value=result_handler,
            )
        entry = CommandEntry(command, working_directory, result_handler or noop_callback)
        self._pending.append(entry)
        self.logger.debug(
            "Queued command: %s",
            command,
            extra={"working_directory": working_directory, "pending": len(self._pending)},
        )
        return entry

    def process(self) -> None:
        """Start draining the queue.

        Raises:
            QueueBusyError: If the previous drain has not completed yet
        """
        self._start_cycle()

    async def run(self) -> List[CommandResult]:
        """Process the queue and wait for ``queue-complete``.

        Returns:
            List[CommandResult]: Results of this cycle, in completion order
        """
        done = asyncio.get_running_loop().create_future()
        cycle_results: List[CommandResult] = []

        def resolve(_name: str) -> None:
            if not done.done():
                done.set_result(list(cycle_results))

        listener = self.events.once(QueueEvent.QUEUE_COMPLETE, resolve)
        try:
            # A queue-complete listener may start the next cycle before
            # resolve() runs, so this cycle records into its own list.
            self._start_cycle(cycle_results)
        except QueueBusyError:
            self.events.off(QueueEvent.QUEUE_COMPLETE, listener)
            raise
        return await done

    def _start_cycle(self, results: Optional[List[CommandResult]] = None) -> None:
        if self._draining:
            raise QueueBusyError(self._name)

        self._draining = True
        self._results = results if results is not None else []
        self.logger.info("Processing %d queued command(s)", len(self._pending))
        self.events.emit(QueueEvent.QUEUE_BEGIN, self._name)

        if self._mode is QueueMode.SEQUENTIAL:
            self._drain_sequential()
        else:
            self._drain_concurrent()

    def _drain_sequential(self) -> None:
        # Completions delivered while runner.run() is still on the stack are
        # picked up by this loop instead of recursing into another drain.
        self._dispatching = True
        try:
            while self._pending:
                self._outstanding = 1
                self._dispatch(self._pending.popleft())
                if self._outstanding:
                    return
        finally:
            self._dispatching = False
        self._finish()

    def _drain_concurrent(self) -> None:
        # Only the entries queued when process() was called belong to this cycle.
        count = len(self._pending)
        self._outstanding = count
        self._dispatching = True
        try:
            for _ in range(count):
                self._dispatch(self._pending.popleft())
        finally:
            self._dispatching = False

        self.logger.debug("Dispatched %d command(s)", count)
        self.events.emit(QueueEvent.ALL_DISPATCHED, self._name)
        if self._outstanding == 0:
            self._finish()

    def _dispatch(self, entry: CommandEntry) -> None:
        event = CommandEvent(self._name, entry.command, entry.working_directory)
        self._in_flight.add(entry)
        self.events.emit(QueueEvent.COMMAND_START, event)
        callback = partial(self._on_command_done, entry, event, time.time())
        try:
            self.runner.run(entry.command, entry.working_directory, callback)
        except Exception as e:
            self.logger.exception("Runner failed to start command: %s", entry.command)
            if entry in self._in_flight:
                callback(LaunchFailure(entry.command, entry.working_directory, e), "", "")

    def _on_command_done(
        self,
        entry: CommandEntry,
        event: CommandEvent,
        start_time: float,
        error: Optional[CommandError],
        stdout: str,
        stderr: str,
    ) -> None:
        if entry not in self._in_flight:
            self.logger.warning("Ignoring repeated completion for: %s", entry.command)
            return
        self._in_flight.discard(entry)

        self._results.append(
            CommandResult(
                command=entry.command,
                working_directory=entry.working_directory,
                status=ExecutionStatus.FAILED if error else ExecutionStatus.COMPLETED,
                exit_code=_exit_code(error),
                stdout=stdout,
                stderr=stderr,
                start_time=start_time,
                end_time=time.time(),
                error=error,
            )
        )

        try:
            entry.result_handler(error, stdout, stderr)
        except Exception:
            self.logger.exception("Result handler raised for: %s", entry.command)
        self.events.emit(QueueEvent.COMMAND_DONE, event)

        if self._mode is QueueMode.SEQUENTIAL:
            self._outstanding = 0
            if not self._dispatching:
                self._drain_sequential()
            return

        self._outstanding -= 1
        if self._outstanding == 0 and not self._dispatching:
            self._finish()

    def _finish(self) -> None:
        self._draining = False
        failed = sum(1 for result in self._results if not result.succeeded)
        self.logger.info(
            "Queue complete: %d command(s), %d failed", len(self._results), failed
        )
        self.events.emit(QueueEvent.QUEUE_COMPLETE, self._name)
