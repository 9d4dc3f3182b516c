"""Incremental reader that splits newly written bytes into lines."""

import os

import aiofiles


class LineReader:
    """
    Read whatever was appended to a file since the last read.

    An unterminated tail is never buffered: the cursor is moved back over it
    so it is read again, complete, once its delimiter shows up.
    """

    def __init__(self, handle, path: str, delimiter: bytes = b"\n"):
        if len(delimiter) != 1:
            raise ValueError(f"delimiter must be a single byte, got {delimiter!r}")
        self._handle = handle
        self.path = path
        self.delimiter = delimiter

    @classmethod
    async def open(
        cls, path: str, delimiter: bytes = b"\n", at_end: bool = False
    ) -> "LineReader":
        """Open a file for reading, at its end or at its start."""
        handle = await aiofiles.open(path, mode="rb")
        try:
            if at_end:
                await handle.seek(0, os.SEEK_END)
        except BaseException:
            await handle.close()
            raise
        return cls(handle, path, delimiter)

    def stat(self) -> os.stat_result:
        """Stat the open file (which may no longer be at the path)."""
        return os.fstat(self._handle.fileno())

    async def position(self) -> int:
        return await self._handle.tell()

    async def seek(self, offset: int) -> None:
        await self._handle.seek(offset)

    async def read_lines(self) -> list[bytes]:
        """
        Read to end of file and return the completed lines.

        If nothing could be read but the cursor is past the end of the file,
        the file was truncated in place and is read again from the start.
        """
        pos = await self._handle.tell()
        data = await self._handle.read()
        if not data:
            if pos <= self.stat().st_size:
                return []
            pos = 0
            await self._handle.seek(0)
            data = await self._handle.read()
            if not data:
                return []

        *lines, carry = data.split(self.delimiter)
        if carry:
            await self._handle.seek(pos + len(data) - len(carry))

        # A truncate racing with a rewrite sometimes reads at the wrong
        # offset and gets NUL filler; this doesn't catch every case.
        if lines:
            lines[0] = lines[0].lstrip(b"\x00")
        return lines

    async def close(self) -> None:
        await self._handle.close()

    @property
    def closed(self) -> bool:
        return self._handle.closed
