"""Directory notification sources."""

from .base import Event, EventKind, EventSource
from .observer import ObserverSource

__all__ = ["Event", "EventKind", "EventSource", "ObserverSource"]
