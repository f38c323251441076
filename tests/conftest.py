# tests/conftest.py
# Standard library imports
import asyncio
import logging

# Third-party imports
import pytest

# Local/package imports
from cmdqueue.exceptions import NonZeroExit
from cmdqueue.logging import LOGGER_NAME


class SimulatedRunner:
    """Runner that completes commands after a delay instead of spawning them.

    Commands containing ``fail`` complete with a ``NonZeroExit``. Every other
    command echoes its text back as stdout.
    """

    def __init__(self, delays=None, default_delay=0.01):
        self.delays = delays or {}
        self.default_delay = default_delay
        self.dispatched = []
        self.running = 0
        self.max_running = 0

    def _result(self, command, working_directory):
        if "fail" in command:
            error = NonZeroExit(command, working_directory, exit_code=1, error_output="boom")
            return error, "", "boom"
        return None, command, ""

    def run(self, command, working_directory, callback):
        self.dispatched.append(command)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        delay = self.delays.get(command, self.default_delay)
        asyncio.get_running_loop().call_later(
            delay, self._complete, command, working_directory, callback
        )

    def _complete(self, command, working_directory, callback):
        self.running -= 1
        callback(*self._result(command, working_directory))


class ImmediateRunner(SimulatedRunner):
    """Runner that calls back before ``run`` returns."""

    def run(self, command, working_directory, callback):
        self.dispatched.append(command)
        callback(*self._result(command, working_directory))


class EventRecorder:
    """Collects ``(event, payload)`` pairs from an engine."""

    def __init__(self, engine):
        self.events = []
        for event in (
            "queue-begin",
            "command-start",
            "command-done",
            "all-dispatched",
            "queue-complete",
        ):
            engine.on(event, self._listener(event))

    def _listener(self, event):
        def record(payload):
            self.events.append((event, payload))

        return record

    def names(self):
        return [event for event, _ in self.events]

    def payloads(self, event):
        return [payload for name, payload in self.events if name == event]


@pytest.fixture(autouse=True)
def reset_cmdqueue_logging():
    """Drop handlers added by CLI runs so they do not outlive captured streams."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def simulated_runner():
    return SimulatedRunner()


@pytest.fixture
def immediate_runner():
    return ImmediateRunner()
