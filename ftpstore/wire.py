import asyncio
import datetime
import logging
import ssl as _ssl
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Callable, Dict, List, NamedTuple, Optional, Protocol, Sequence, Tuple

import aioftp

logger = logging.getLogger(__name__)

CURRENT_DIR = "."
PARENT_DIR = ".."

# Permission bits as used by RemoteEntry.has_permission.
USER_ACCESS, GROUP_ACCESS, WORLD_ACCESS = 0, 1, 2
READ_PERMISSION, WRITE_PERMISSION, EXECUTE_PERMISSION = 0, 1, 2


class Reply(NamedTuple):
    """Code and text of the last reply received on a control connection."""

    code: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.code < 400


@dataclass(frozen=True)
class RemoteEntry:
    """
    One row of a directory listing.

    Attributes:
        name: Name as reported by the server (some servers report full paths).
        kind: "file", "dir", "link" or "unknown".
        size: Size in bytes, 0 when unknown.
        link: Target of a symbolic link, None for anything else.
        owner: Owning user, None when the server doesn't say.
        group: Owning group, None when the server doesn't say.
        mode: Permission bits (0o777 style), None when unknown.
        timestamp: Modification time with whatever precision the listing gives.
    """

    name: str
    kind: str = "file"
    size: int = 0
    link: Optional[str] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    mode: Optional[int] = None
    timestamp: Optional[datetime.datetime] = None

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_link(self) -> bool:
        return self.kind == "link"

    @property
    def file_name(self) -> str:
        """Last segment of ``name``; some servers list entries by full path."""
        if "/" in self.name and self.name != "/":
            return self.name.rstrip("/").rsplit("/", 1)[-1]
        return self.name

    def has_permission(self, access: int, permission: int) -> bool:
        if self.mode is None:
            return False
        shift = (2 - access) * 3 + (2 - permission)
        return bool(self.mode & (1 << shift))


EntryFilter = Callable[[RemoteEntry], bool]


class DataChannel(Protocol):
    async def read(self, size: int = -1) -> bytes: ...

    async def write(self, data: bytes) -> None: ...

    async def close(self) -> None: ...


class WireClient(Protocol):
    """
    What the file store needs from one FTP session.

    Commands never raise for a negative reply; they return False (or None)
    and leave the reply in ``reply``. Network failures do raise.
    """

    reply: Reply

    @property
    def connected(self) -> bool: ...

    async def connect(self, host: str, port: int) -> None: ...

    async def login(self, user: str, password: str, account: Optional[str] = None) -> None: ...

    async def command(self, line: str, expected: str = "2xx") -> bool: ...

    async def set_file_type(self, file_type: str) -> bool: ...

    async def open_data(self, command: str, path: str) -> Optional[DataChannel]: ...

    async def complete_pending(self) -> bool: ...

    async def list_entries(self, path: str) -> List[RemoteEntry]: ...

    async def noop(self) -> bool: ...

    async def pwd(self) -> Optional[str]: ...

    async def mdtm(self, path: str) -> Optional[datetime.datetime]: ...

    async def quit(self) -> None: ...

    def close(self) -> None: ...


def parse_mdtm(text: str) -> Optional[datetime.datetime]:
    """Parse an MDTM reply or an aioftp ``modify`` fact (``YYYYMMDDhhmmss[.sss]``, always UTC)."""
    value = text.strip().split()[-1] if text.strip() else ""
    for pattern in ("%Y%m%d%H%M%S.%f", "%Y%m%d%H%M%S"):
        try:
            return datetime.datetime.strptime(value, pattern).replace(tzinfo=datetime.timezone.utc)
        except ValueError:
            continue
    return None


def entry_from_info(path: PurePosixPath, info: Dict[str, str], line: bytes) -> RemoteEntry:
    """Build a RemoteEntry from what one of aioftp's LIST line parsers returned.

    aioftp reports a symbolic link as the file or directory it points at, so
    the link is recognized from the raw line's type letter.
    """
    link = info.get("link_dst")
    kind = info.get("type", "unknown")
    if link is not None or line[:1] == b"l":
        kind = "link"
        if link is None and b" -> " in line:
            link = line.rsplit(b" -> ", 1)[1].decode(errors="replace").strip()
    mode = info.get("unix.mode")
    modify = info.get("modify")
    return RemoteEntry(
        name=str(path),
        kind=kind,
        size=int(info.get("size") or 0),
        link=link,
        owner=info.get("unix.owner"),
        group=info.get("unix.group"),
        mode=None if mode is None else int(mode) & 0o777,
        timestamp=parse_mdtm(modify) if modify else None,
    )


class StreamChannel:
    """Data connection opened for a single transfer."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, timeout: Optional[float]) -> None:
        self.reader = reader
        self.writer = writer
        self.timeout = timeout

    async def read(self, size: int = -1) -> bytes:
        return await asyncio.wait_for(self.reader.read(size), timeout=self.timeout)

    async def write(self, data: bytes) -> None:
        self.writer.write(data)
        await asyncio.wait_for(self.writer.drain(), timeout=self.timeout)

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionResetError, BrokenPipeError):
            pass


class AioftpWireClient:
    """
    ``WireClient`` on top of ``aioftp.Client``.

    aioftp raises ``StatusCodeError`` for unexpected replies; this adapter
    turns those into a False return plus ``reply``, which is what the
    connection layer expects. Directory listings are read raw so that
    self-entries and link targets survive, which aioftp's own ``list``
    doesn't guarantee.
    """

    def __init__(
        self,
        encoding: str = "utf-8",
        ssl: Optional[_ssl.SSLContext] = None,
        socket_timeout: Optional[float] = None,
        connection_timeout: Optional[float] = None,
        passive_commands: Sequence[str] = ("epsv", "pasv"),
        list_hidden: bool = False,
    ) -> None:
        self.client = aioftp.Client(
            socket_timeout=socket_timeout,
            connection_timeout=connection_timeout,
            encoding=encoding,
            ssl=ssl,
            passive_commands=tuple(passive_commands),
        )
        self.encoding = encoding
        self.socket_timeout = socket_timeout
        self.list_hidden = list_hidden
        self.passive_commands = tuple(name.lower() for name in passive_commands)
        self.reply = Reply(0, "")
        self.alive = False

    @property
    def connected(self) -> bool:
        return self.alive

    def remember(self, code, info) -> None:
        self.reply = Reply(int(code), "\n".join(str(line) for line in (info or [])))

    def remember_error(self, error: aioftp.StatusCodeError) -> None:
        received = error.received_codes
        code = received[-1] if isinstance(received, (tuple, list)) and received else received
        self.remember(code, error.info)

    async def connect(self, host: str, port: int) -> None:
        await self.client.connect(host, port)
        self.alive = True

    async def login(self, user: str, password: str, account: Optional[str] = None) -> None:
        await self.client.login(user, password, account or "")

    async def command(self, line: str, expected: str = "2xx") -> bool:
        try:
            code, info = await self.client.command(line, expected)
        except aioftp.StatusCodeError as error:
            self.remember_error(error)
            return False
        self.remember(code, info)
        return True

    async def set_file_type(self, file_type: str) -> bool:
        return await self.command(f"TYPE {file_type}", "200")

    async def passive_connection(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Open a passive data connection, trying each passive command in turn.

        ``aioftp.Client.get_passive_connection`` sends a TYPE before every
        transfer; the connection layer owns the session's type, so this only
        negotiates the address.
        """
        client = self.client
        negotiators = {"epsv": client._do_epsv, "pasv": client._do_pasv}
        for number, name in enumerate(self.passive_commands, start=1):
            try:
                host, port = await negotiators[name]()
                break
            except aioftp.StatusCodeError as error:
                # Only "not implemented" falls through to the next command.
                if number == len(self.passive_commands) or not error.received_codes[-1].matches("50x"):
                    raise
        if host in ("0.0.0.0", None):
            host = client.server_host
        return await client._open_connection(host, port)

    async def open_data(self, command: str, path: str) -> Optional[StreamChannel]:
        try:
            reader, writer = await self.passive_connection()
        except aioftp.StatusCodeError as error:
            self.remember_error(error)
            return None
        channel = StreamChannel(reader, writer, self.socket_timeout)
        line = f"{command} {path}".strip()
        if not await self.command(line, "1xx"):
            await channel.close()
            return None
        return channel

    async def complete_pending(self) -> bool:
        try:
            code, info = await self.client.command(None, "2xx", "1xx")
        except aioftp.StatusCodeError as error:
            self.remember_error(error)
            return False
        self.remember(code, info)
        return True

    def parse_entry(self, line: bytes) -> Optional[RemoteEntry]:
        """One LIST line through aioftp's unix and windows parsers; None when neither applies."""
        try:
            path, info = self.client.parse_list_line(line)
        except ValueError:
            logger.debug("Unparseable listing line: %r", line)
            return None
        return entry_from_info(path, info, line)

    async def list_entries(self, path: str) -> List[RemoteEntry]:
        command = "LIST -a" if self.list_hidden else "LIST"
        channel = await self.open_data(command, path)
        if channel is None:
            # A refused listing means "nothing there" to the dialect layer.
            return []
        try:
            data = await channel.read()
        finally:
            await channel.close()
        if not await self.complete_pending():
            return []
        entries = []
        for line in data.splitlines():
            if not line.strip() or line.startswith(b"total "):
                continue
            entry = self.parse_entry(line)
            if entry is not None:
                entries.append(entry)
        return entries

    async def noop(self) -> bool:
        return await self.command("NOOP", "2xx")

    async def pwd(self) -> Optional[str]:
        try:
            path = await self.client.get_current_directory()
        except aioftp.StatusCodeError as error:
            self.remember_error(error)
            return None
        return str(path)

    async def mdtm(self, path: str) -> Optional[datetime.datetime]:
        if not await self.command(f"MDTM {path}", "213"):
            return None
        return parse_mdtm(self.reply.text)

    async def quit(self) -> None:
        try:
            await self.client.quit()
        finally:
            self.alive = False
            self.client.close()

    def close(self) -> None:
        self.alive = False
        self.client.close()
