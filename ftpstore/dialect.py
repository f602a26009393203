"""
Directory listing dialects.

FTP servers disagree on what ``LIST <path>`` returns. Unix-style servers list
a directory's own ``.`` entry (and for a file, the file itself), so one listing
of the path answers "does it exist" and "is it a directory". Other servers
never list ``.``, so the only reliable way to find an entry is to list its
parent and look for its name.

A ``Dialect`` picks one of the two conventions, either up front or by probing
the root directory once (``auto-detect``). All functions here expect absolute,
normalized paths and a connection held by the caller.
"""

import enum
import logging
from typing import List, Optional

from .errors import DialectStateError, FTPFileNotFoundError, FTPLinkLoopError, FTPNotADirectoryError
from .wire import CURRENT_DIR, PARENT_DIR, RemoteEntry

logger = logging.getLogger(__name__)

# Same bound as most kernels put on symlink resolution.
MAX_LINK_HOPS = 40


class Kind(enum.Enum):
    UNIX = "unix"
    NON_UNIX = "non-unix"
    AUTO_DETECT = "auto-detect"


def _is_self(entry: RemoteEntry) -> bool:
    return entry.file_name == CURRENT_DIR


async def unix_children(connection, path) -> List[RemoteEntry]:
    entries = await connection.list(path)
    if not entries:
        raise FTPFileNotFoundError(str(path))

    is_directory = False
    children = []
    for entry in entries:
        name = entry.file_name
        if name == CURRENT_DIR:
            is_directory = True
        elif name != PARENT_DIR:
            children.append(entry)

    if not is_directory:
        raise FTPNotADirectoryError(str(path))
    return children


async def unix_entry(connection, path) -> RemoteEntry:
    name = path.name
    entries = await connection.list(path, lambda entry: _is_self(entry) or (bool(name) and entry.file_name == name))
    connection.throw_if_empty(path, entries)
    if len(entries) == 1:
        return entries[0]
    for entry in entries:
        if _is_self(entry):
            return entry
    raise RuntimeError(f"Ambiguous listing for {path}: {[entry.name for entry in entries]}")


async def unix_link(connection, entry: RemoteEntry, path) -> Optional[RemoteEntry]:
    if entry.link is not None:
        return entry
    if not (entry.is_dir and _is_self(entry)):
        return None

    # A directory looked up by its own path comes back as ".", which never
    # shows link-ness. Only the parent's listing does.
    parent = path.parent
    if parent is None:
        return None
    name = path.name
    entries = await connection.list(parent, lambda other: (other.is_dir or other.is_link) and other.file_name == name)
    connection.throw_if_empty(path, entries)
    return entries[0] if entries[0].link is not None else None


async def non_unix_children(connection, path) -> List[RemoteEntry]:
    entries = await connection.list(path)

    is_directory = False
    children = []
    for entry in entries:
        name = entry.file_name
        if name == CURRENT_DIR:
            is_directory = True
        elif name != PARENT_DIR:
            children.append(entry)

    if not is_directory and len(children) <= 1:
        # An empty directory, a directory with one child and a plain file
        # can list the same; ask the parent what the path is.
        current = path
        entry = await non_unix_entry(connection, current)
        hops = 0
        while entry.is_link:
            hops += 1
            if hops > MAX_LINK_HOPS:
                raise FTPLinkLoopError(str(path))
            current = current.resolve_sibling(entry.link).normalize()
            entry = await non_unix_entry(connection, current)
        if not entry.is_dir:
            raise FTPNotADirectoryError(str(path))

    return children


async def non_unix_entry(connection, path) -> RemoteEntry:
    parent = path.parent
    if parent is None:
        # The root has no parent to list.
        return RemoteEntry(name="/", kind="dir")

    name = path.name
    entries = await connection.list(parent, lambda entry: entry.file_name == name)
    if not entries:
        raise FTPFileNotFoundError(str(path))
    if len(entries) == 1:
        return entries[0]
    raise RuntimeError(f"Multiple entries named {name!r} in {parent}")


async def non_unix_link(connection, entry: RemoteEntry, path) -> Optional[RemoteEntry]:
    # non_unix_entry already read the entry from the parent's listing.
    return entry if entry.link is not None else None


_CHILDREN = {Kind.UNIX: unix_children, Kind.NON_UNIX: non_unix_children}
_ENTRY = {Kind.UNIX: unix_entry, Kind.NON_UNIX: non_unix_entry}
_LINK = {Kind.UNIX: unix_link, Kind.NON_UNIX: non_unix_link}


class Dialect:
    """
    The listing convention in use for one file store.

    ``Dialect(Kind.UNIX)`` and ``Dialect(Kind.NON_UNIX)`` are ready to use.
    ``Dialect(Kind.AUTO_DETECT)`` must be initialized exactly once, with a
    connection, before anything else; it then behaves like whichever
    convention the root directory's listing suggested.

    Only the root is probed. A server that lists ``.`` at the root but not
    in subdirectories (or the other way around) will be misdetected; pick
    the dialect explicitly for those.
    """

    def __init__(self, kind: Kind = Kind.AUTO_DETECT) -> None:
        self.kind = kind
        self.resolved: Optional[Kind] = None if kind is Kind.AUTO_DETECT else kind

    @classmethod
    def of(cls, name: str) -> "Dialect":
        """Build a dialect from its configuration name."""
        try:
            return cls(Kind(name))
        except ValueError:
            raise ValueError(f"Unknown dialect {name!r}") from None

    def __repr__(self) -> str:
        if self.kind is Kind.AUTO_DETECT:
            state = self.resolved.value if self.resolved else "uninitialized"
            return f"Dialect(auto-detect -> {state})"
        return f"Dialect({self.kind.value})"

    @property
    def delegate(self) -> Kind:
        if self.resolved is None:
            raise DialectStateError("Auto-detecting dialect used before initialize()")
        return self.resolved

    async def initialize(self, connection) -> None:
        """Probe the root directory for a ``.`` entry (auto-detect only).

        Raises:
            DialectStateError: If this auto-detecting dialect was already initialized.
        """
        if self.kind is not Kind.AUTO_DETECT:
            return
        if self.resolved is not None:
            raise DialectStateError("Auto-detecting dialect initialized twice")

        entries = await connection.list("/", _is_self)
        self.resolved = Kind.UNIX if entries else Kind.NON_UNIX
        logger.debug("%s - detected %s directory listings", connection, self.resolved.value)

    async def children(self, connection, path) -> List[RemoteEntry]:
        """Entries of directory ``path``, without ``.`` and ``..``.

        Raises:
            FTPFileNotFoundError: If ``path`` doesn't exist.
            FTPNotADirectoryError: If ``path`` isn't a directory.
        """
        return await _CHILDREN[self.delegate](connection, path)

    async def entry(self, connection, path) -> RemoteEntry:
        """Listing entry of ``path`` itself. For directories this may be the ``.`` entry."""
        return await _ENTRY[self.delegate](connection, path)

    async def link(self, connection, entry: RemoteEntry, path) -> Optional[RemoteEntry]:
        """The entry describing ``path`` as a symbolic link, None if it isn't one."""
        return await _LINK[self.delegate](connection, entry, path)

