import io
import logging
import warnings
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from .errors import aggregate
from .wire import DataChannel

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


async def attempt(step: Callable[[], Awaitable[Any]], errors: List[Exception]) -> None:
    """Await ``step``, recording a failure instead of raising it."""
    try:
        await step()
    except Exception as error:
        errors.append(error)


def raise_first(errors: List[Exception]) -> None:
    primary = aggregate(errors)
    if primary is not None:
        raise primary


class TransferStream:
    """
    A data transfer in progress on a pooled connection.

    The stream holds one reference on its connection for its whole life.
    Closing runs, in order: close the data channel, finalize the transfer on
    the control connection, honour delete-on-close (only if finalizing
    worked), and release the reference. Every step runs even when an earlier
    one fails; the first failure is raised with the others suppressed onto
    it. A connection whose transfer was never finalized can't be reused, so
    callers must close streams, preferably with ``async with``.
    """

    kind = "stream"

    def __init__(self, connection, channel: DataChannel, path, delete_on_close: bool = False) -> None:
        self.connection = connection
        self.channel = channel
        self.path = path
        self.delete_on_close = delete_on_close
        self.closed = False

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"<{type(self).__name__} {self.path} on {self.connection} ({state})>"

    def check_open(self) -> None:
        if self.closed:
            raise ValueError(f"I/O operation on closed {self.kind} for {self.path}")

    async def close(self) -> None:
        """Finish the transfer and give the connection back. Closing twice does nothing."""
        if self.closed:
            return
        self.closed = True

        errors: List[Exception] = []
        try:
            await attempt(self.channel.close, errors)
            await attempt(partial(self.connection.finalize, self.path), errors)
            if not errors and self.delete_on_close:
                await attempt(partial(self.connection.delete, self.path, False), errors)
        except BaseException:
            # Cancelled before the transfer reply was read: the session can't be reused.
            self.connection.abandon()
            raise
        finally:
            await attempt(self.connection.release, errors)

        logger.debug("%s - closed %s for %s", self.connection, self.kind, self.path)
        raise_first(errors)

    async def __aenter__(self):
        return self

    async def __aexit__(self, type, value, trace) -> None:
        await self.close()

    def __del__(self) -> None:
        if getattr(self, "closed", True):
            return
        # Only a warning: closing needs the event loop and protocol round trips.
        warnings.warn(f"Unclosed {self!r}; its connection stays unusable", ResourceWarning, stacklevel=2)


class RemoteInputStream(TransferStream):
    """Bytes of a remote file, as sent by ``RETR``."""

    kind = "input stream"

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, everything that's left when ``size`` is negative.

        Returns b"" at the end of the file.
        """
        self.check_open()
        if size < 0:
            chunks = []
            while True:
                chunk = await self.channel.read(CHUNK_SIZE)
                if not chunk:
                    return b"".join(chunks)
                chunks.append(chunk)
        return await self.channel.read(size)

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()

    async def chunks(self, size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
        while True:
            chunk = await self.read(size)
            if not chunk:
                return
            yield chunk


class RemoteOutputStream(TransferStream):
    """Bytes going to a remote file, through ``STOR`` or ``APPE``."""

    kind = "output stream"

    def __init__(self, connection, channel: DataChannel, path, delete_on_close: bool = False) -> None:
        super().__init__(connection, channel, path, delete_on_close)
        self.written = 0

    async def write(self, data: bytes) -> int:
        self.check_open()
        await self.channel.write(data)
        self.written += len(data)
        return len(data)

    async def flush(self) -> None:
        self.check_open()


class RemoteChannel:
    """
    Byte channel over a single read or write transfer.

    FTP transfers are sequential, so the channel only moves forward: it tracks
    the position, but can't seek or truncate. A write channel opened for
    append starts at the file's current size.
    """

    def __init__(self, stream: TransferStream, size: int = 0, position: int = 0) -> None:
        self.stream = stream
        self.known_size = size
        self.offset = position

    @property
    def readable(self) -> bool:
        return isinstance(self.stream, RemoteInputStream)

    @property
    def writable(self) -> bool:
        return isinstance(self.stream, RemoteOutputStream)

    @property
    def closed(self) -> bool:
        return self.stream.closed

    def position(self) -> int:
        self.stream.check_open()
        return self.offset

    def size(self) -> int:
        self.stream.check_open()
        if self.writable:
            return max(self.known_size, self.offset)
        return self.known_size

    async def read(self, size: int = -1) -> bytes:
        if not self.readable:
            raise io.UnsupportedOperation("Channel not open for reading")
        data = await self.stream.read(size)
        self.offset += len(data)
        return data

    async def write(self, data: bytes) -> int:
        if not self.writable:
            raise io.UnsupportedOperation("Channel not open for writing")
        written = await self.stream.write(data)
        self.offset += written
        return written

    def seek(self, position: int) -> None:
        raise io.UnsupportedOperation("FTP channels can't seek")

    def truncate(self, size: Optional[int] = None) -> None:
        raise io.UnsupportedOperation("FTP channels can't truncate")

    async def close(self) -> None:
        await self.stream.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, type, value, trace) -> None:
        await self.close()
