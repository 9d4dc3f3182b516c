"""Shared fixtures: a fake notification source and helpers to drive a follower."""

import asyncio

import pytest
import pytest_asyncio

from logfollow.config import FollowConfig
from logfollow.follower import Follower, Record
from logfollow.sources.base import Event, EventKind, EventSource


class FakeSource(EventSource):
    """Notification source the test pushes events into by hand."""

    def __init__(self, fail: Exception | None = None):
        self.directory = None
        self.closed = False
        self._post = None
        self._fail = fail

    def start(self, directory, post):
        if self._fail is not None:
            raise self._fail
        self.directory = directory
        self._post = post

    def emit(self, kind: EventKind, path=None, dest_path=None, error=None) -> None:
        self._post(Event(kind=kind, path=path, dest_path=dest_path, error=error))

    async def close(self) -> None:
        self.closed = True


def write(path, *lines: str) -> list[str]:
    """Append lines to a file, each with a newline."""
    with open(path, "a") as f:
        for line in lines:
            f.write(line + "\n")
    return list(lines)


def touch(path) -> None:
    with open(path, "w"):
        pass


class Session:
    """A follower started on a file in a temp dir, driven by a FakeSource."""

    def __init__(self, follower: Follower, source: FakeSource, path: str):
        self.follower = follower
        self.source = source
        self.path = path
        self.task: asyncio.Task | None = None

    async def start(self, **kwargs) -> "Session":
        self.task = asyncio.create_task(self.follower.start(self.path, **kwargs))
        await asyncio.wait_for(self.follower.ready.wait(), 2)
        return self

    def modified(self, path=None) -> None:
        self.source.emit(EventKind.MODIFIED, path or self.path)

    def removed(self) -> None:
        self.source.emit(EventKind.REMOVED, self.path)

    async def next(self, timeout: float = 2.0) -> Record:
        return await asyncio.wait_for(self.follower.records.get(), timeout)

    async def lines(self, n: int) -> list[str]:
        got = []
        for _ in range(n):
            record = await self.next()
            assert record.error is None, record.error
            got.append(str(record))
        return got

    async def settle(self) -> None:
        """Give the loop time to handle events that produce no records."""
        await asyncio.sleep(0.05)

    def idle(self) -> bool:
        return self.follower.records.empty()

    async def finish(self) -> list[Record]:
        """Stop the session and return everything it still emitted."""
        stopper = asyncio.create_task(self.follower.stop())
        records = []
        while True:
            record = await self.next()
            if record.eof:
                break
            records.append(record)
        await asyncio.wait_for(stopper, 2)
        await asyncio.wait_for(self.task, 2)
        return records


@pytest.fixture
def log_path(tmp_path):
    path = tmp_path / "f"
    touch(path)
    return str(path)


@pytest_asyncio.fixture
async def make_session(log_path):
    """Factory for sessions; anything left running is torn down afterwards."""
    sessions = []

    def factory(config: FollowConfig | None = None, path: str | None = None) -> Session:
        source = FakeSource()
        session = Session(Follower(config, source=source), source, path or log_path)
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        if session.task is None or session.task.done():
            continue
        session.task.cancel()
        while not session.task.done():
            try:
                await asyncio.wait_for(session.follower.records.get(), 0.1)
            except asyncio.TimeoutError:
                pass
        try:
            await session.task
        except (asyncio.CancelledError, Exception):
            pass
