"""Test configuration and fixtures for ftpstore.

Everything runs against ``FakeServer``, an in-memory FTP server reached
through ``FakeWire`` clients that implement the same wire contract as the
aioftp adapter. No sockets, no mocks.
"""

import datetime
import io
import itertools
from dataclasses import dataclass, field
from typing import AsyncGenerator, Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio

from ftpstore import Basic, FtpFileSystem, Limits, Settings
from ftpstore.pool import ConnectionPool
from ftpstore.wire import Reply, RemoteEntry

MODIFIED = datetime.datetime(2023, 5, 17, 14, 30, 12, tzinfo=datetime.timezone.utc)


@dataclass
class Node:
    kind: str  # "file", "dir" or "link"
    data: bytes = b""
    target: Optional[str] = None
    mode: int = 0o644
    modified: datetime.datetime = MODIFIED


def _join(directory: str, name: str) -> str:
    return "/" + name if directory == "/" else f"{directory}/{name}"


def _split(path: str) -> Tuple[str, str]:
    directory, _, name = path.rpartition("/")
    return directory or "/", name


def _normalize(path: str, cwd: str = "/") -> str:
    if not path.startswith("/"):
        path = _join(cwd, path)
    segments: List[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return "/" + "/".join(segments)


class FakeServer:
    """
    In-memory FTP server.

    ``self_entries`` decides the listing style: True behaves like a unix
    server (directories list "." and ".."), False like a server that never
    lists them.
    """

    def __init__(self, self_entries: bool = True, home: str = "/home/user") -> None:
        self.nodes: Dict[str, Node] = {"/": Node("dir", mode=0o755)}
        self.self_entries = self_entries
        self.home = home
        self.log: List[str] = []
        self.wires: List["FakeWire"] = []
        self.counter = itertools.count(1)

        # Failure switches
        self.refuse: Set[str] = set()
        self.fail_complete = False
        self.fail_quit = False
        self.connect_failures = 0
        self.fail_connect_after: Optional[int] = None

        self.add_dir(home)

    # Building the tree

    def add_dir(self, path: str, mode: int = 0o755) -> None:
        path = _normalize(path)
        if path != "/":
            parent, _ = _split(path)
            if parent not in self.nodes:
                self.add_dir(parent)
        self.nodes[path] = Node("dir", mode=mode)

    def add_file(self, path: str, data: bytes = b"", mode: int = 0o644) -> None:
        path = _normalize(path)
        parent, _ = _split(path)
        if parent not in self.nodes:
            self.add_dir(parent)
        self.nodes[path] = Node("file", data=data, mode=mode)

    def add_link(self, path: str, target: str) -> None:
        path = _normalize(path)
        parent, _ = _split(path)
        if parent not in self.nodes:
            self.add_dir(parent)
        self.nodes[path] = Node("link", target=target, mode=0o777)

    def data(self, path: str) -> bytes:
        return self.nodes[_normalize(path)].data

    def exists(self, path: str) -> bool:
        return _normalize(path) in self.nodes

    # Lookups

    def follow(self, path: str) -> Optional[Tuple[str, Node]]:
        for _ in range(40):
            node = self.nodes.get(path)
            if node is None:
                return None
            if node.kind != "link":
                return path, node
            directory, _ = _split(path)
            path = _normalize(node.target, directory)
        return None

    def children(self, directory: str) -> List[Tuple[str, Node]]:
        prefix = directory.rstrip("/") + "/"
        return [
            (path[len(prefix):], node)
            for path, node in sorted(self.nodes.items())
            if path != directory and path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    def entry(self, name: str, node: Node) -> RemoteEntry:
        # Listings only carry the day; MDTM has the full time.
        day = node.modified.replace(hour=0, minute=0, second=0)
        return RemoteEntry(
            name=name,
            kind=node.kind,
            size=len(node.data),
            link=node.target,
            owner="user",
            group="staff",
            mode=node.mode,
            timestamp=day,
        )

    def listing(self, path: str) -> Optional[List[RemoteEntry]]:
        node = self.nodes.get(path)
        if node is None:
            return None
        if node.kind == "link":
            resolved = self.follow(path)
            if resolved is None or resolved[1].kind != "dir":
                return [self.entry(_split(path)[1], node)]
            path, node = resolved
        if node.kind == "file":
            return [self.entry(_split(path)[1], node)]

        entries = []
        if self.self_entries:
            entries.append(RemoteEntry(".", "dir", mode=node.mode, owner="user", group="staff"))
            entries.append(RemoteEntry("..", "dir", mode=0o755, owner="root", group="root"))
        entries.extend(self.entry(name, child) for name, child in self.children(path))
        return entries

    # Commands

    def execute(self, wire: "FakeWire", line: str) -> Reply:
        verb, _, argument = line.partition(" ")
        verb = verb.upper()
        if verb in self.refuse:
            return Reply(550, f"{verb} refused")
        path = _normalize(argument, wire.cwd) if argument else wire.cwd

        if verb in ("NOOP", "TYPE", "STRU", "MODE"):
            return Reply(200, "Command okay")

        if verb == "CWD":
            resolved = self.follow(path)
            if resolved is None or resolved[1].kind != "dir":
                return Reply(550, f"{argument}: No such directory")
            wire.cwd = path
            return Reply(250, "Directory changed")

        if verb == "MKD":
            parent, _ = _split(path)
            if path in self.nodes or parent not in self.nodes:
                return Reply(550, f"{argument}: Cannot create directory")
            self.nodes[path] = Node("dir", mode=0o755)
            return Reply(257, f'"{path}" created')

        if verb == "RMD":
            node = self.nodes.get(path)
            if node is None or node.kind != "dir" or self.children(path):
                return Reply(550, f"{argument}: Cannot remove directory")
            del self.nodes[path]
            return Reply(250, "Directory removed")

        if verb == "DELE":
            node = self.nodes.get(path)
            if node is None or node.kind == "dir":
                return Reply(550, f"{argument}: Cannot delete")
            del self.nodes[path]
            return Reply(250, "File deleted")

        if verb == "RNFR":
            if path not in self.nodes:
                return Reply(550, f"{argument}: No such file")
            wire.rename_from = path
            return Reply(350, "Ready for RNTO")

        if verb == "RNTO":
            source, wire.rename_from = wire.rename_from, None
            parent, _ = _split(path)
            if source is None or parent not in self.nodes:
                return Reply(553, f"{argument}: Cannot rename")
            prefix = source + "/"
            for old in sorted(self.nodes):
                if old == source or old.startswith(prefix):
                    self.nodes[path + old[len(source):]] = self.nodes.pop(old)
            return Reply(250, "Renamed")

        if verb == "MDTM":
            resolved = self.follow(path)
            if resolved is None or resolved[1].kind != "file":
                return Reply(550, f"{argument}: Not a plain file")
            return Reply(213, resolved[1].modified.strftime("%Y%m%d%H%M%S"))

        return Reply(502, "Command not implemented")

    def wire(self) -> "FakeWire":
        return FakeWire(self)

    async def connector(self) -> "FakeWire":
        """A connected, logged in wire client, as a pool connector."""
        wire = self.wire()
        await wire.connect("ftp.example.com", 21)
        await wire.login("user", "secret")
        return wire

    def commands(self, verb: str) -> List[str]:
        return [line for line in self.log if line.split(" ", 1)[0] == verb]


class FakeChannel:
    """Data connection of a FakeWire."""

    def __init__(self, server: FakeServer, path: str, command: str, data: bytes = b"") -> None:
        self.server = server
        self.path = path
        self.command = command
        self.buffer = io.BytesIO(data)
        self.closed = False

    async def read(self, size: int = -1) -> bytes:
        return self.buffer.read(size)

    async def write(self, data: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("data connection closed")
        self.buffer.write(data)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self.command == "STOR":
            self.server.add_file(self.path, self.buffer.getvalue())
        elif self.command == "APPE":
            existing = self.server.nodes.get(self.path)
            previous = existing.data if existing is not None else b""
            self.server.add_file(self.path, previous + self.buffer.getvalue())


class FakeWire:
    """One session with a FakeServer, implementing the wire client contract."""

    def __init__(self, server: FakeServer) -> None:
        self.server = server
        self.number = next(server.counter)
        self.reply = Reply(0, "")
        self.alive = False
        self.closed = False
        self.broken = False
        self.cwd = server.home
        self.rename_from: Optional[str] = None
        self.file_type = "I"
        self.log: List[str] = []
        server.wires.append(self)

    def record(self, line: str) -> None:
        self.log.append(line)
        self.server.log.append(line)

    @property
    def connected(self) -> bool:
        return self.alive

    async def connect(self, host: str, port: int) -> None:
        server = self.server
        if server.connect_failures > 0:
            server.connect_failures -= 1
            raise ConnectionRefusedError(f"{host}:{port} refused the connection")
        if server.fail_connect_after is not None:
            if server.fail_connect_after <= 0:
                raise ConnectionRefusedError(f"{host}:{port} refused the connection")
            server.fail_connect_after -= 1
        self.alive = True

    async def login(self, user: str, password: str, account: Optional[str] = None) -> None:
        self.record(f"USER {user}")

    async def command(self, line: str, expected: str = "2xx") -> bool:
        self.record(line)
        if self.broken:
            raise ConnectionResetError("control connection lost")
        self.reply = self.server.execute(self, line)
        code = str(self.reply.code)
        if expected.endswith("xx"):
            return code[0] == expected[0]
        return code == expected

    async def set_file_type(self, file_type: str) -> bool:
        if await self.command(f"TYPE {file_type}"):
            self.file_type = file_type
            return True
        return False

    async def open_data(self, command: str, path: str) -> Optional[FakeChannel]:
        self.record(f"{command} {path}")
        server = self.server
        if command in server.refuse:
            self.reply = Reply(550, f"{command} refused")
            return None
        path = _normalize(path, self.cwd)

        if command == "RETR":
            resolved = server.follow(path)
            if resolved is None or resolved[1].kind != "file":
                self.reply = Reply(550, f"{path}: No such file")
                return None
            self.reply = Reply(150, "Opening data connection")
            return FakeChannel(server, path, command, resolved[1].data)

        parent, _ = _split(path)
        node = server.nodes.get(path)
        if parent not in server.nodes or (node is not None and node.kind == "dir"):
            self.reply = Reply(553, f"{path}: Cannot store")
            return None
        self.reply = Reply(150, "Opening data connection")
        return FakeChannel(server, path, command)

    async def complete_pending(self) -> bool:
        self.record("COMPLETE")
        if self.server.fail_complete:
            self.reply = Reply(451, "Transfer aborted")
            return False
        self.reply = Reply(226, "Transfer complete")
        return True

    async def list_entries(self, path: str) -> List[RemoteEntry]:
        self.record(f"LIST {path}")
        if "LIST" in self.server.refuse:
            self.reply = Reply(550, "LIST refused")
            return []
        entries = self.server.listing(_normalize(path, self.cwd))
        if entries is None:
            self.reply = Reply(450, f"{path}: No such file or directory")
            return []
        self.reply = Reply(226, "Transfer complete")
        return entries

    async def noop(self) -> bool:
        return await self.command("NOOP")

    async def pwd(self) -> Optional[str]:
        self.record("PWD")
        self.reply = Reply(257, f'"{self.cwd}"')
        return self.cwd

    async def mdtm(self, path: str) -> Optional[datetime.datetime]:
        if not await self.command(f"MDTM {path}", "213"):
            return None
        return datetime.datetime.strptime(self.reply.text, "%Y%m%d%H%M%S").replace(tzinfo=datetime.timezone.utc)

    async def quit(self) -> None:
        self.record("QUIT")
        self.alive = False
        if self.server.fail_quit:
            raise ConnectionResetError("connection reset during QUIT")

    def close(self) -> None:
        self.alive = False
        self.closed = True


@pytest.fixture
def server() -> FakeServer:
    server = FakeServer()
    server.add_file("/home/user/hello.txt", b"Hello, world!")
    server.add_dir("/data")
    server.add_file("/data/a.txt", b"alpha")
    server.add_file("/data/b.txt", b"bravo")
    return server


@pytest_asyncio.fixture
async def pool(server: FakeServer) -> AsyncGenerator[ConnectionPool, None]:
    pool = ConnectionPool(server.connector, Limits(connections=2))
    await pool.open()
    yield pool
    await pool.close()


def make_store(server: FakeServer, connections: int = 2, **settings) -> FtpFileSystem:
    return FtpFileSystem(
        "ftp://ftp.example.com",
        auth=Basic("user", "secret"),
        limits=Limits(connections=connections),
        settings=Settings(**settings),
        wire_factory=server.wire,
    )


@pytest.fixture(params=["unix", "non-unix"])
def listing_server(request) -> FakeServer:
    """The standard tree on both kinds of server."""
    server = FakeServer(self_entries=request.param == "unix")
    server.add_file("/home/user/hello.txt", b"Hello, world!")
    server.add_dir("/data")
    server.add_file("/data/a.txt", b"alpha")
    server.add_file("/data/b.txt", b"bravo")
    server.add_dir("/data/empty")
    server.add_file("/data/.hidden", b"secret")
    server.add_file("/data/locked.bin", b"\x00\x01", mode=0o000)
    server.add_link("/data/link.txt", "a.txt")
    server.add_link("/dirlink", "/data")
    server.add_link("/data/dangling", "missing.txt")
    return server


@pytest_asyncio.fixture
async def store(listing_server: FakeServer) -> AsyncGenerator[FtpFileSystem, None]:
    store = make_store(listing_server)
    await store.open()
    yield store
    await store.close()
