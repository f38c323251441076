# tests/test_events.py
# Third-party imports
import pytest

# Local/package imports
from cmdqueue.events import CommandEvent, EventEmitter, QueueEvent
from cmdqueue.exceptions import ValidationError


@pytest.fixture
def emitter():
    return EventEmitter(engine="test")


class TestEventEmitter:
    """Publish/subscribe behavior."""

    def test_listeners_run_in_subscription_order(self, emitter):
        calls = []
        emitter.on("queue-begin", lambda name: calls.append(("first", name)))
        emitter.on(QueueEvent.QUEUE_BEGIN, lambda name: calls.append(("second", name)))

        count = emitter.emit("queue-begin", "build")

        assert count == 2
        assert calls == [("first", "build"), ("second", "build")]

    def test_events_are_independent(self, emitter):
        calls = []
        emitter.on("command-start", calls.append)

        emitter.emit("command-done", "ignored")

        assert calls == []

    def test_once(self, emitter):
        calls = []
        emitter.once("queue-complete", calls.append)

        emitter.emit("queue-complete", "a")
        emitter.emit("queue-complete", "b")

        assert calls == ["a"]
        assert emitter.listeners("queue-complete") == []

    def test_off(self, emitter):
        calls = []
        emitter.on("all-dispatched", calls.append)

        assert emitter.off("all-dispatched", calls.append) is True
        assert emitter.off("all-dispatched", calls.append) is False
        emitter.emit("all-dispatched", "x")
        assert calls == []

    def test_unknown_event(self, emitter):
        with pytest.raises(ValidationError):
            emitter.on("command-finished", print)
        with pytest.raises(ValidationError):
            emitter.emit("nope")

    def test_listener_must_be_callable(self, emitter):
        with pytest.raises(ValidationError):
            emitter.on("queue-begin", "not callable")

    def test_raising_listener_does_not_block_others(self, emitter):
        calls = []

        def explode(_payload):
            raise RuntimeError("listener bug")

        emitter.on("queue-begin", explode)
        emitter.on("queue-begin", calls.append)

        emitter.emit("queue-begin", "build")

        assert calls == ["build"]


def test_command_event_to_dict(tmp_path):
    event = CommandEvent("build", "make", tmp_path)
    assert event.to_dict() == {
        "engine": "build",
        "command": "make",
        "working_directory": str(tmp_path),
    }
