"""Base class for notification sources and the events they deliver."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum


class EventKind(Enum):
    """Everything the follow loop can be woken up by."""

    # Directory notifications
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    MOVED = "moved"
    ERROR = "error"

    # Control
    REOPEN = "reopen"
    STOP = "stop"
    CANCEL = "cancel"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Event:
    """A single event for the follow loop."""

    kind: EventKind
    path: str | None = None
    dest_path: str | None = None
    error: BaseException | None = None

    def names(self, path: str) -> bool:
        """Check if this event is about the given path."""
        return path in (self.path, self.dest_path)


Post = Callable[[Event], None]


class EventSource(ABC):
    """Abstract base class for directory notification sources."""

    @abstractmethod
    def start(self, directory: str, post: Post) -> None:
        """
        Arm the subscription on a directory.

        Events must be handed to ``post`` on the event loop thread. Raise if
        the directory can't be watched.
        """

    async def close(self) -> None:
        """Clean up resources."""
        pass
