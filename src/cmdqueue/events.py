"""
Lifecycle events and the per-engine publish/subscribe channel.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, DefaultDict, Dict, List, Union

from .exceptions import ValidationError
from .logging import QueueLogger

Listener = Callable[[Any], None]


class QueueEvent(str, Enum):
    """Events emitted by every queue engine."""

    QUEUE_BEGIN = "queue-begin"
    COMMAND_START = "command-start"
    COMMAND_DONE = "command-done"
    ALL_DISPATCHED = "all-dispatched"
    QUEUE_COMPLETE = "queue-complete"


@dataclass(frozen=True)
class CommandEvent:
    """Payload of ``command-start`` and ``command-done``."""

    engine: str
    command: str
    working_directory: Union[str, Path]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": self.engine,
            "command": self.command,
            "working_directory": str(self.working_directory),
        }


def _coerce_event(event: Union[QueueEvent, str]) -> QueueEvent:
    try:
        return QueueEvent(event)
    except ValueError as e:
        raise ValidationError(
            f"Unknown queue event: {event!r}", field="event", value=event
        ) from e


class EventEmitter:
    """Maps event names to ordered listener lists.

    Listeners run synchronously inside :meth:`emit`, in subscription order.
    A listener that raises is logged and skipped so the remaining listeners
    and the emitting engine carry on.
    """

    def __init__(self, **log_context):
        self._listeners: DefaultDict[QueueEvent, List[Listener]] = defaultdict(list)
        self.logger = QueueLogger().get_context_logger(
            emitter_class=self.__class__.__name__, **log_context
        )

    def on(self, event: Union[QueueEvent, str], listener: Listener) -> Listener:
        """Register ``listener`` for ``event`` and return it."""
        if not callable(listener):
            raise ValidationError(
                "Event listener must be callable", field="listener", value=listener
            )
        self._listeners[_coerce_event(event)].append(listener)
        return listener

    def once(self, event: Union[QueueEvent, str], listener: Listener) -> Listener:
        """Register ``listener`` to run on the next ``event`` only."""
        event = _coerce_event(event)

        def wrapper(payload: Any) -> None:
            self.off(event, wrapper)
            listener(payload)

        return self.on(event, wrapper)

    def off(self, event: Union[QueueEvent, str], listener: Listener) -> bool:
        """Remove one registration of ``listener``; False if it was not found."""
        listeners = self._listeners[_coerce_event(event)]
        try:
            listeners.remove(listener)
        except ValueError:
            return False
        return True

    def listeners(self, event: Union[QueueEvent, str]) -> List[Listener]:
        return list(self._listeners[_coerce_event(event)])

    def emit(self, event: Union[QueueEvent, str], payload: Any = None) -> int:
        """Call every listener of ``event`` with ``payload``.

        Returns:
            int: Number of listeners invoked
        """
        event = _coerce_event(event)
        # Snapshot so once() wrappers can unsubscribe mid-emit.
        listeners = list(self._listeners[event])
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                self.logger.exception(
                    "Listener for %s raised", event.value, extra={"payload": payload}
                )
        return len(listeners)
