"""Directory notifications from watchdog."""

import asyncio
import logging
import os

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import SubscriptionError
from .base import Event, EventKind, EventSource, Post

logger = logging.getLogger(__name__)

# watchdog event types we care about; opened/closed_no_write are dropped.
_KINDS = {
    "created": EventKind.CREATED,
    "modified": EventKind.MODIFIED,
    "closed": EventKind.MODIFIED,
    "deleted": EventKind.REMOVED,
    "moved": EventKind.MOVED,
}


def _decode(path) -> str | None:
    if not path:
        return None
    return os.fsdecode(path)


class _Handler(FileSystemEventHandler):
    """Translate watchdog events and hand them to the event loop."""

    def __init__(self, directory: str, loop: asyncio.AbstractEventLoop, post: Post):
        super().__init__()
        self._directory = directory
        self._loop = loop
        self._post = post

    def on_any_event(self, event: FileSystemEvent) -> None:
        src = _decode(event.src_path)
        if event.event_type == "deleted" and src == self._directory:
            logger.debug("Watched directory removed: %s", src)
            self._send(Event(
                kind=EventKind.ERROR,
                path=src,
                error=SubscriptionError(f"watched directory was removed: {src}"),
            ))
            return
        if event.is_directory:
            return

        kind = _KINDS.get(event.event_type)
        if kind is None:
            return
        self._send(Event(kind=kind, path=src, dest_path=_decode(getattr(event, "dest_path", None))))

    def _send(self, event: Event) -> None:
        try:
            self._loop.call_soon_threadsafe(self._post, event)
        except RuntimeError:
            # The loop is already closed; the session is gone.
            logger.debug("Dropping %s for %s, event loop closed", event.kind.value, event.path)


class ObserverSource(EventSource):
    """Watch a directory (not the file: removals aren't reliably reported on the file itself)."""

    def __init__(self, join_timeout: float = 5.0):
        self.join_timeout = join_timeout
        self._observer: Observer | None = None

    def start(self, directory: str, post: Post) -> None:
        loop = asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_Handler(directory, loop, post), directory, recursive=False)
        try:
            observer.start()
        except OSError as e:
            raise SubscriptionError(f"can't watch {directory}: {e}") from e
        self._observer = observer
        logger.debug("Watching directory: %s", directory)

    async def close(self) -> None:
        """Stop the observer thread."""
        if self._observer is None:
            return
        observer, self._observer = self._observer, None
        observer.stop()
        await asyncio.to_thread(observer.join, self.join_timeout)
        logger.debug("Observer stopped")
