"""Follow a file for appended lines, surviving truncation and rotation."""

import asyncio
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

import aiofiles.os

from .config import FollowConfig
from .errors import FileGoneError, FollowError, FollowTimeout
from .reader import LineReader
from .reconnect import Phase, ReconnectPolicy
from .sources.base import Event, EventKind, EventSource
from .sources.observer import ObserverSource


@dataclass(frozen=True)
class Record:
    """A completed line, or an error if ``error`` is set."""

    data: bytes = b""
    error: BaseException | None = None

    @property
    def eof(self) -> bool:
        """True for the end-of-stream marker, always the last record."""
        return isinstance(self.error, EOFError)

    def __str__(self) -> str:
        return self.data.decode(errors="replace")


class State(Enum):
    INITIALIZING = "initializing"
    WATCHING = "watching"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"
    FAILED = "failed"


TERMINAL = frozenset({State.STOPPED, State.FAILED})

# Any state may also move to a terminal one.
_TRANSITIONS = {
    State.INITIALIZING: {State.WATCHING},
    State.WATCHING: {State.RECONNECTING},
    State.RECONNECTING: {State.WATCHING},
}


class Follower:
    """
    Follow a single file, like ``tail -F``.

    The follow loop runs inside ``start()`` and is the only reader of the file.
    Lines and errors are delivered through ``records``, which holds at most one
    record: the loop waits for the consumer before reading on.
    """

    def __init__(
        self,
        config: FollowConfig | None = None,
        source: EventSource | None = None,
    ):
        """
        Initialize the follower.

        Args:
            config: Delimiter and reconnect settings
            source: Directory notification source (watchdog if not given)
        """
        self.config = config or FollowConfig()
        self.records: asyncio.Queue[Record] = asyncio.Queue(maxsize=1)
        self.ready = asyncio.Event()
        self.state = State.INITIALIZING
        self.path: str | None = None

        self._source = source
        self._events: asyncio.Queue[Event] = asyncio.Queue()
        self._lock = asyncio.Lock()
        self._reader: LineReader | None = None
        self._done = asyncio.Event()
        self._started = False
        self._stopping = False
        self._reopen_pending = False
        self._cancel: asyncio.Event | None = None
        self._deadline: float | None = None

    async def start(
        self,
        path: str | os.PathLike,
        *,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> FollowError | None:
        """
        Follow ``path`` until stopped, cancelled, timed out or the file is gone for good.

        Setup failures (file missing, directory can't be watched) are raised
        and produce no records. Otherwise returns why the session ended:
        None after ``stop()`` or ``cancel`` being set, the error otherwise.
        """
        if self._started:
            raise RuntimeError("follower already started")
        self._started = True
        self.path = os.path.abspath(path)
        loop = asyncio.get_running_loop()
        source = self._source or ObserverSource()

        try:
            self._reader = await LineReader.open(
                self.path, self.config.delimiter, at_end=True
            )
            source.start(os.path.dirname(self.path), self._post)
        except BaseException:
            self._transition(State.FAILED)
            await self._close_handle()
            await source.close()
            self._done.set()
            raise

        cancel_task = None
        if cancel is not None:
            self._cancel = cancel
            cancel_task = asyncio.create_task(self._watch_cancel(cancel))
        timer = None
        if timeout is not None:
            self._deadline = loop.time() + timeout
            timer = loop.call_later(timeout, self._post, Event(EventKind.TIMEOUT))

        self._transition(State.WATCHING)
        self.ready.set()
        try:
            return await self._run()
        finally:
            if timer is not None:
                timer.cancel()
            if cancel_task is not None:
                cancel_task.cancel()
            await source.close()
            await self._close_handle()
            self._done.set()

    async def stop(self) -> None:
        """Stop following and wait until the end-of-stream record was emitted."""
        if not self._started:
            return
        if not self._stopping:
            self._stopping = True
            self._post(Event(EventKind.STOP))
        await self._done.wait()

    def request_reopen(self) -> None:
        """
        Reopen the file on the next loop iteration.

        Requests coalesce: at most one is ever pending. Call from the event
        loop thread (e.g. via ``loop.add_signal_handler``).
        """
        if self._reopen_pending:
            return
        self._reopen_pending = True
        self._post(Event(EventKind.REOPEN))

    async def close(self) -> None:
        """
        Give up the session.

        A running session is stopped through the loop (so it still ends with
        the end-of-stream record) before the file handle is released.
        """
        await self.stop()
        await self._close_handle()

    async def stream(self) -> AsyncIterator[Record]:
        """Stream records until the end-of-stream record."""
        while True:
            record = await self.records.get()
            if record.eof:
                return
            yield record

    @property
    def done(self) -> bool:
        return self._done.is_set()

    async def _run(self) -> FollowError | None:
        """Take one event at a time until a terminal state is reached."""
        reason = None
        try:
            while self.state not in TERMINAL:
                event = await self._events.get()
                reason = await self._dispatch(event)
        except BaseException as e:
            if self.state not in TERMINAL:
                cancelled = isinstance(e, asyncio.CancelledError)
                self._transition(State.STOPPED if cancelled else State.FAILED)
            await self._emit(Record(error=EOFError()))
            raise

        await self._emit(Record(error=EOFError()))
        return reason

    async def _dispatch(self, event: Event) -> FollowError | None:
        kind = event.kind
        if kind in (EventKind.STOP, EventKind.CANCEL):
            await self._drain()
            self._transition(State.STOPPED)
        elif kind is EventKind.TIMEOUT:
            await self._drain()
            self._transition(State.STOPPED)
            error = FollowTimeout(f"follow: timed out following {self.path}")
            await self._emit(Record(error=error))
            return error
        elif kind is EventKind.ERROR:
            await self._emit(Record(error=event.error))
        elif kind is EventKind.REOPEN:
            self._reopen_pending = False
            if self._reader is not None:
                return await self._reopen()
        elif self._reader is None or not event.names(self.path):
            # No handle means reconnecting was given up for a stop still queued.
            pass
        elif kind in (EventKind.CREATED, EventKind.MODIFIED):
            return await self._on_write()
        else:
            return await self._on_vanish()
        return None

    async def _on_write(self) -> FollowError | None:
        st = await self._path_stat()
        if self._reader is None:
            return None
        if st is None or os.path.samestat(st, self._reader.stat()):
            await self._drain()
            return None

        # Replaced without us seeing a remove or rename.
        await self._drain()
        return await self._reattach()

    async def _on_vanish(self) -> FollowError | None:
        st = await self._path_stat()
        if self._reader is None:
            return None
        if st is not None and os.path.samestat(st, self._reader.stat()):
            return None

        # Whatever was written before the file went away comes first.
        await self._drain()
        return await self._reattach()

    async def _reopen(self) -> FollowError | None:
        try:
            reader = await LineReader.open(self.path, self.config.delimiter)
        except FileNotFoundError:
            return await self._on_vanish()
        except OSError as e:
            await self._emit(Record(error=e))
            return None

        await self._drain()
        async with self._lock:
            old = self._reader
            if old is None:
                await reader.close()
                return None
            st = reader.stat()
            if os.path.samestat(st, old.stat()):
                offset = await old.position()
                if offset <= st.st_size:
                    await reader.seek(offset)
            self._reader = reader
            await old.close()
        await self._drain()
        return None

    async def _reattach(self) -> FollowError | None:
        """Close the handle and find the file again, from its start."""
        await self._close_handle()
        if self.state is State.WATCHING:
            self._transition(State.RECONNECTING)

        try:
            reader = await self._reconnect()
        except FileGoneError as e:
            self._transition(State.FAILED)
            await self._emit(Record(error=e))
            return e
        if reader is None:
            return None

        async with self._lock:
            self._reader = reader
        self._transition(State.WATCHING)
        await self._drain()
        return None

    async def _reconnect(self) -> LineReader | None:
        """
        Try to open the file again.

        Returns None if a stop, cancel or timeout came in during the slow
        phase; raises FileGoneError once all attempts are used up.
        """
        last_error = None
        for attempt in ReconnectPolicy(self.config).attempts():
            if attempt.phase is Phase.SLOW and self._interrupted():
                return None
            if attempt.delay:
                await asyncio.sleep(attempt.delay)
            try:
                return await LineReader.open(self.path, self.config.delimiter)
            except OSError as e:
                last_error = e
        raise FileGoneError(self.path) from last_error

    async def _drain(self) -> None:
        """Emit every complete line the open handle has for us."""
        error = None
        async with self._lock:
            if self._reader is None:
                return
            try:
                lines = await self._reader.read_lines()
            except OSError as e:
                lines = []
                error = e

        for line in lines:
            await self._emit_line(line)
        if error is not None:
            await self._emit(Record(error=error))

    async def _emit_line(self, data: bytes) -> None:
        if self.state in TERMINAL:
            raise RuntimeError(f"line emitted after session {self.state.value}")
        await self._emit(Record(data=data))

    async def _emit(self, record: Record) -> None:
        await self.records.put(record)

    async def _path_stat(self) -> os.stat_result | None:
        try:
            return await aiofiles.os.stat(self.path)
        except OSError:
            return None

    async def _close_handle(self) -> None:
        async with self._lock:
            reader, self._reader = self._reader, None
            if reader is not None:
                await reader.close()

    async def _watch_cancel(self, cancel: asyncio.Event) -> None:
        await cancel.wait()
        self._post(Event(EventKind.CANCEL))

    def _interrupted(self) -> bool:
        if self._stopping or (self._cancel is not None and self._cancel.is_set()):
            return True
        return (
            self._deadline is not None
            and asyncio.get_running_loop().time() >= self._deadline
        )

    def _post(self, event: Event) -> None:
        self._events.put_nowait(event)

    def _transition(self, state: State) -> None:
        if self.state in TERMINAL or (
            state not in TERMINAL and state not in _TRANSITIONS[self.state]
        ):
            raise RuntimeError(
                f"invalid state transition: {self.state.value} -> {state.value}"
            )
        self.state = state
