import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set, Union

from .config import Limits, Transfer
from .errors import (
    DefaultExceptionFactory,
    ExceptionFactory,
    FTPFileExistsError,
    FTPFileSystemError,
    PoolClosedError,
    PoolTimeoutError,
    suppress,
)
from .options import FileStructure, FileType, OpenOptions, TransferMode, TransferOptions
from .streams import CHUNK_SIZE, RemoteInputStream, RemoteOutputStream, attempt, raise_first
from .wire import EntryFilter, RemoteEntry, WireClient

logger = logging.getLogger(__name__)

# Coroutine producing a connected, logged in wire client.
Connector = Callable[[], Awaitable[WireClient]]


class PooledConnection:
    """
    One FTP session handed out by a ``ConnectionPool``.

    A connection belongs to exactly one caller at a time. Acquiring it sets
    its reference count to 1; every stream opened on it adds a reference, and
    the connection only goes back to the pool (or, for overflow connections,
    gets disconnected) when the count drops back to 0.

    The session's transfer state (type, structure, mode) is cached, and a
    call's transfer options are only sent to the server when they differ.
    A new session's state is unknown; its first transfer puts it into the
    pool's ``Transfer`` defaults (binary when no file type is configured).
    """

    def __init__(self, pool: "ConnectionPool", wire: WireClient, pooled: bool, number: int) -> None:
        self.pool = pool
        self.wire = wire
        self.pooled = pooled
        self.name = f"client-{number}"
        self.references = 0
        self.exceptions: ExceptionFactory = pool.exceptions

        self.file_type: Optional[FileType] = None
        self.structure: Optional[FileStructure] = None
        self.mode: Optional[TransferMode] = None

    def __repr__(self) -> str:
        return f"{self.pool.label} - {self.name}"

    def add_reference(self) -> int:
        self.references += 1
        logger.debug("%s - increased reference count to %d", self, self.references)
        return self.references

    async def release(self) -> None:
        """Drop one reference; the last one hands the connection back to the pool."""
        if self.references <= 0:
            raise RuntimeError(f"{self} released more often than acquired")
        self.references -= 1
        logger.debug("%s - decreased reference count to %d", self, self.references)
        if self.references == 0:
            await self.pool.reclaim(self)

    async def __aenter__(self) -> "PooledConnection":
        return self

    async def __aexit__(self, type, value, trace) -> None:
        await self.release()

    async def validate(self) -> bool:
        """Keep-alive probe: True when a NOOP round trip still works."""
        if not self.wire.connected:
            logger.debug("%s - not connected", self)
            return False
        try:
            return await self.wire.noop()
        except Exception:
            logger.debug("%s - keep-alive failed", self, exc_info=True)
            return False

    def abandon(self) -> None:
        """Drop the session without a QUIT; the pool replaces it on its next acquire."""
        logger.debug("%s - abandoned with a reply possibly unread", self)
        self.wire.close()

    async def disconnect(self) -> None:
        try:
            if self.wire.connected:
                await self.wire.quit()
        finally:
            self.wire.close()
            logger.debug("%s - disconnected", self)

    def reply_error(self, path=None) -> FTPFileSystemError:
        code, text = self.wire.reply
        return FTPFileSystemError(None if path is None else str(path), None, code, text)

    async def apply(self, options: TransferOptions) -> None:
        """Send only the transfer options that differ from the session's current ones.

        An option the call leaves out keeps the session's current value, or
        the pool default while the session has none yet.
        """
        defaults = self.pool.transfer
        file_type = options.file_type or self.file_type or defaults.file_type or FileType.binary()
        if file_type != self.file_type:
            if not await self.wire.set_file_type(file_type.argument):
                raise self.reply_error()
            self.file_type = file_type
        structure = options.structure or self.structure or defaults.structure
        if structure is not None and structure != self.structure:
            if not await self.wire.command(structure.command):
                raise self.reply_error()
            self.structure = structure
        mode = options.mode or self.mode or defaults.mode
        if mode is not None and mode != self.mode:
            if not await self.wire.command(mode.command):
                raise self.reply_error()
            self.mode = mode

    async def pwd(self) -> str:
        path = await self.wire.pwd()
        if path is None:
            raise self.reply_error()
        return path

    async def open_data(self, command: str, path):
        try:
            return await self.wire.open_data(command, str(path))
        except BaseException:
            self.abandon()
            raise

    async def list(self, path, predicate: Optional[EntryFilter] = None) -> List[RemoteEntry]:
        try:
            entries = await self.wire.list_entries(str(path))
        except BaseException:
            # A LIST cut short leaves its data connection and reply behind.
            self.abandon()
            raise
        if predicate is None:
            return entries
        return [entry for entry in entries if predicate(entry)]

    def throw_if_empty(self, path, entries: List[RemoteEntry]) -> None:
        if not entries:
            code, text = self.wire.reply
            raise self.exceptions.create_get_file_error(str(path), code, text)

    async def open_input(self, path, options: OpenOptions) -> RemoteInputStream:
        """Start a ``RETR`` transfer. The stream holds a reference until closed."""
        await self.apply(options)

        channel = await self.open_data("RETR", path)
        if channel is None:
            code, text = self.wire.reply
            raise self.exceptions.create_new_input_stream_error(str(path), code, text)

        self.add_reference()
        logger.debug("%s - created input stream for %s", self, path)
        return RemoteInputStream(self, channel, path, options.delete_on_close)

    async def open_output(self, path, options: OpenOptions) -> RemoteOutputStream:
        """Start a ``STOR`` (or ``APPE``) transfer. The stream holds a reference until closed."""
        await self.apply(options)

        channel = await self.open_data("APPE" if options.append else "STOR", path)
        if channel is None:
            code, text = self.wire.reply
            raise self.exceptions.create_new_output_stream_error(str(path), code, text, options.options)

        self.add_reference()
        logger.debug("%s - created output stream for %s", self, path)
        return RemoteOutputStream(self, channel, path, options.delete_on_close)

    async def store_file(
        self,
        path,
        source: Union[bytes, RemoteInputStream],
        options: TransferOptions,
        open_options: tuple = (),
    ) -> int:
        """Upload ``source`` to ``path`` in one go and return the number of bytes sent."""
        await self.apply(options)

        channel = await self.open_data("STOR", path)
        if channel is None:
            code, text = self.wire.reply
            raise self.exceptions.create_new_output_stream_error(str(path), code, text, open_options)

        sent = 0
        errors: List[Exception] = []
        try:
            try:
                if isinstance(source, (bytes, bytearray, memoryview)):
                    data = bytes(source)
                    for start in range(0, len(data), CHUNK_SIZE):
                        await channel.write(data[start:start + CHUNK_SIZE])
                    sent = len(data)
                else:
                    async for chunk in source:
                        await channel.write(chunk)
                        sent += len(chunk)
            except Exception as error:
                errors.append(error)
            await attempt(channel.close, errors)
            await attempt(lambda: self.finalize(path), errors)
        except BaseException:
            self.abandon()
            raise
        raise_first(errors)
        return sent

    async def finalize(self, path=None) -> None:
        """Wait for the server to confirm the transfer that just ended."""
        if not await self.wire.complete_pending():
            raise self.reply_error(path)

    async def mkdir(self, path, dialect) -> None:
        if not await self.wire.command(f"MKD {path}"):
            code, text = self.wire.reply
            if await self.file_exists(path, dialect):
                raise FTPFileExistsError(str(path), None, code, text)
            raise self.exceptions.create_create_directory_error(str(path), code, text)

    async def file_exists(self, path, dialect) -> bool:
        try:
            await dialect.entry(self, path)
            return True
        except OSError:
            # The MKD failure is what the caller reports, not this one.
            return False

    async def delete(self, path, is_directory: bool) -> None:
        command = f"RMD {path}" if is_directory else f"DELE {path}"
        if not await self.wire.command(command):
            code, text = self.wire.reply
            raise self.exceptions.create_delete_error(str(path), code, text, is_directory)

    async def rename(self, source, target) -> None:
        if not await self.wire.command(f"RNFR {source}", "3xx") or not await self.wire.command(f"RNTO {target}"):
            code, text = self.wire.reply
            raise self.exceptions.create_move_error(str(source), str(target), code, text)

    async def mdtm(self, path):
        return await self.wire.mdtm(str(path))


class ConnectionPool:
    """
    A fixed set of FTP sessions to one server.

    ``open()`` creates ``limits.connections`` sessions up front. ``acquire()``
    hands out an idle one, waiting up to ``limits.wait`` seconds (0 waits
    forever). ``acquire_or_create()`` never waits: with no idle session it
    creates a temporary overflow session that is disconnected, not pooled,
    once released. Callers already holding a connection must use it for a
    second one, or they may wait on themselves.

    Idle sessions are checked with a NOOP before being handed out. A broken
    one is replaced; if the replacement can't be created, the broken session
    goes back into the idle set so the pool doesn't shrink.

    Everything here runs on one event loop: the idle queue and the reference
    counts are only touched from that loop, which is the whole locking story.
    """

    def __init__(
        self,
        connector: Connector,
        limits: Optional[Limits] = None,
        transfer: Optional[Transfer] = None,
        exceptions: Optional[ExceptionFactory] = None,
        label: str = "ftp",
    ) -> None:
        self.connector = connector
        self.limits = limits or Limits()
        self.transfer = transfer or Transfer()
        self.exceptions = exceptions or DefaultExceptionFactory()
        self.label = label

        # Created in open(), on the loop that will use it.
        self.idle: Optional[asyncio.Queue] = None
        self.pooled: List[PooledConnection] = []
        self.overflow: Set[PooledConnection] = set()
        self.created = 0
        self.closed = False

    @property
    def capacity(self) -> int:
        return self.limits.connections

    async def open(self) -> "ConnectionPool":
        """Create the pooled sessions.

        If any of them fails, the ones already created are disconnected and
        the first error propagates, with disconnect failures suppressed
        onto it.
        """
        logger.debug("%s - creating pool with %d connections, wait %s", self.label, self.capacity, self.limits.wait)
        self.idle = asyncio.Queue(maxsize=self.capacity)
        try:
            for _ in range(self.capacity):
                connection = await self.create(pooled=True)
                self.idle.put_nowait(connection)
        except Exception as error:
            logger.debug("%s - failed to create pool", self.label, exc_info=True)
            for connection in self.pooled:
                try:
                    await connection.disconnect()
                except Exception as secondary:
                    suppress(error, secondary)
            self.pooled.clear()
            self.closed = True
            raise

        logger.debug("%s - created pool with %d connections", self.label, self.capacity)
        return self

    async def create(self, pooled: bool) -> PooledConnection:
        wire = await self.connector()
        self.created += 1
        connection = PooledConnection(self, wire, pooled, self.created)
        if pooled:
            self.pooled.append(connection)
        else:
            self.overflow.add(connection)
        logger.debug("%s - created connection (pooled: %s)", connection, pooled)
        return connection

    def check_open(self) -> None:
        if self.closed or self.idle is None:
            raise PoolClosedError(f"{self.label} - connection pool is not open")

    def take(self, connection: Optional[PooledConnection]) -> PooledConnection:
        if connection is None:
            # Shutdown marker: pass it on to the next waiter.
            self.idle.put_nowait(None)
            raise PoolClosedError(f"{self.label} - connection pool was closed")
        return connection

    def hand_out(self, connection: PooledConnection) -> PooledConnection:
        connection.references = 1
        logger.debug("%s - took connection, %d idle", connection, self.idle.qsize())
        return connection

    async def acquire(self) -> PooledConnection:
        """
        Take an idle connection, waiting for one if necessary.

        Returns:
            PooledConnection: A validated connection with a reference count of 1.

        Raises:
            PoolTimeoutError: If none became available within ``limits.wait`` seconds.
            PoolClosedError: If the pool is (or gets) closed.
            asyncio.CancelledError: If the waiting task is cancelled.
        """
        self.check_open()
        try:
            if self.limits.wait > 0:
                connection = await asyncio.wait_for(self.idle.get(), timeout=self.limits.wait)
            else:
                connection = await self.idle.get()
        except asyncio.TimeoutError:
            raise PoolTimeoutError(
                f"{self.label} - no connection became available within {self.limits.wait} seconds"
            ) from None
        return await self.prepare(self.take(connection))

    async def acquire_or_create(self) -> PooledConnection:
        """Take an idle connection, or create an overflow one right away."""
        self.check_open()
        try:
            connection = self.idle.get_nowait()
        except asyncio.QueueEmpty:
            return self.hand_out(await self.create(pooled=False))
        return await self.prepare(self.take(connection))

    async def prepare(self, connection: PooledConnection) -> PooledConnection:
        try:
            alive = await connection.validate()
        except BaseException:
            # Interrupted mid-NOOP: the reply is still pending, so the session is
            # dropped and goes back for the next acquire to replace.
            connection.abandon()
            self.restore(connection)
            raise
        if alive:
            return self.hand_out(connection)

        logger.debug("%s - broken, replacing it", connection)
        self.pooled.remove(connection)
        try:
            try:
                await connection.disconnect()
            except Exception:
                logger.debug("%s - disconnect of broken connection failed", connection, exc_info=True)
            replacement = await self.create(pooled=True)
        except BaseException:
            # Keep the pool at full size; the next acquire retries.
            if not self.closed:
                self.pooled.append(connection)
            self.restore(connection)
            raise
        return self.hand_out(replacement)

    def restore(self, connection: PooledConnection) -> None:
        if self.closed:
            return
        self.idle.put_nowait(connection)
        logger.debug("%s - returned unusable connection, %d idle", connection, self.idle.qsize())

    async def reclaim(self, connection: PooledConnection) -> None:
        """Called when a connection's last reference is released."""
        if connection.pooled and not self.closed:
            self.idle.put_nowait(connection)
            logger.debug("%s - returned connection, %d idle", connection, self.idle.qsize())
            return
        self.overflow.discard(connection)
        await connection.disconnect()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[PooledConnection]:
        """``async with pool.connection() as connection:`` around ``acquire``."""
        connection = await self.acquire()
        try:
            yield connection
        finally:
            await connection.release()

    @asynccontextmanager
    async def spare(self) -> AsyncIterator[PooledConnection]:
        """``async with pool.spare() as connection:`` around ``acquire_or_create``."""
        connection = await self.acquire_or_create()
        try:
            yield connection
        finally:
            await connection.release()

    async def keep_alive(self) -> None:
        """Send a NOOP on every idle connection.

        Connections in use are left alone. Failed probes aren't acted on here;
        the broken connection is replaced the next time it's acquired.
        """
        self.check_open()
        drained = []
        while True:
            try:
                drained.append(self.idle.get_nowait())
            except asyncio.QueueEmpty:
                break
        logger.debug("%s - drained %d connections for keep-alive", self.label, len(drained))

        try:
            for connection in drained:
                try:
                    await connection.validate()
                except BaseException:
                    connection.abandon()
                    raise
        finally:
            # A close() during the sweep already disconnected these.
            if not self.closed:
                for connection in drained:
                    self.idle.put_nowait(connection)

    async def close(self) -> None:
        """Disconnect every connection, idle or not. Terminal.

        Tasks waiting in ``acquire`` get a ``PoolClosedError``. Disconnect
        failures are aggregated: the first is raised, the rest suppressed onto it.
        """
        if self.closed:
            return
        self.closed = True

        if self.idle is not None:
            while not self.idle.empty():
                self.idle.get_nowait()
            logger.debug("%s - drained pool for close", self.label)

        errors: List[Exception] = []
        for connection in self.pooled + list(self.overflow):
            await attempt(connection.disconnect, errors)
        self.pooled.clear()
        self.overflow.clear()

        if self.idle is not None:
            self.idle.put_nowait(None)
        raise_first(errors)

    def stats(self) -> Dict[str, Any]:
        """Pool statistics, handy for monitoring or debugging connection issues."""
        idle = 0 if self.idle is None else self.idle.qsize()
        if self.closed:
            idle = 0
        return {
            "label": self.label,
            "capacity": self.capacity,
            "wait": self.limits.wait,
            "pooled": len(self.pooled),
            "transient": len(self.overflow),
            "idle": idle,
            "closed": self.closed,
        }
