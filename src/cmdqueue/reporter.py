"""
Verbose console output for queue engines.
"""

from typing import Callable, Optional

import click

from .config import ThemeConfiguration
from .engine import QueueEngine, QueueMode
from .events import CommandEvent, QueueEvent
from .exceptions import CommandError
from .execution.runner import ResultCallback, noop_callback


class ConsoleReporter:
    """Prints engine events and command output using a color theme."""

    def __init__(
        self,
        theme: Optional[ThemeConfiguration] = None,
        echo: Callable[..., None] = click.secho,
    ):
        self.theme = theme or ThemeConfiguration()
        self._echo = echo

    def _line(self, *parts: tuple, err: bool = False) -> None:
        """Echo ``(text, role)`` parts on one line."""
        text = "".join(
            click.style(part, fg=self.theme.color(role)) if role else part
            for part, role in parts
        )
        self._echo(text, err=err)

    def attach(self, engine: QueueEngine) -> QueueEngine:
        """Subscribe to ``engine``'s lifecycle events."""
        engine.on(QueueEvent.QUEUE_BEGIN, self.on_queue_begin(engine.mode))
        engine.on(QueueEvent.COMMAND_START, self.on_command_start)
        if engine.mode is QueueMode.CONCURRENT:
            engine.on(QueueEvent.ALL_DISPATCHED, self.on_all_dispatched)
        engine.on(QueueEvent.QUEUE_COMPLETE, self.on_queue_complete)
        return engine

    def on_queue_begin(self, mode: QueueMode) -> Callable[[str], None]:
        def listener(name: str) -> None:
            self._line(
                (name, "help"),
                (" : Processing ", None),
                (f"{mode.value} command queue", "info"),
            )

        return listener

    def on_command_start(self, event: CommandEvent) -> None:
        self._echo("")
        self._line(("Executing", "info"), (" : ", None), (event.command, "data"))
        self._line(
            ("From Dir", "info"),
            (" : ", None),
            (str(event.working_directory), "data"),
        )
        self._echo("")

    def on_all_dispatched(self, name: str) -> None:
        self._echo("")
        self._line(
            (name, "help"),
            (
                " : These commands are running in parallel, "
                "this might take a minute...",
                "help",
            ),
        )

    def on_queue_complete(self, name: str) -> None:
        self._line((name, "help"), (" : ", None), ("Command queue processed", "info"))

    def wrap(self, handler: Optional[ResultCallback] = None) -> ResultCallback:
        """Return a result handler that prints output before calling ``handler``."""
        handler = handler or noop_callback

        def screamer(error: Optional[CommandError], stdout: str, stderr: str) -> None:
            if error is not None:
                self._line((str(error), "warn"), err=True)
            if stdout:
                self._line((stdout.rstrip("\n"), "data"))
            if stderr:
                self._line((stderr.rstrip("\n"), "warn"), err=True)
            handler(error, stdout, stderr)

        return screamer
