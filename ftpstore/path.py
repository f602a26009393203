from typing import Any, AsyncIterator, Optional, Tuple, Union
from urllib.parse import quote

PathLike = Union[str, "RemotePath"]


def _clean(path: str) -> str:
    """Collapse repeated slashes and drop a trailing one (except for the root)."""
    if "\0" in path:
        raise ValueError(f"Path contains a NUL character: {path!r}")
    absolute = path.startswith("/")
    segments = [segment for segment in path.split("/") if segment]
    cleaned = "/".join(segments)
    return "/" + cleaned if absolute else cleaned


class RemotePath:
    """
    A ``/``-separated path on one FTP file store.

    Paths are immutable and purely lexical: building, joining or normalizing
    one never talks to the server. The async methods at the bottom do, by
    delegating to the owning store, so ``await path.read_bytes()`` works like
    ``await store.read_bytes(path)``.

    A path without a store is still useful for path arithmetic, but any call
    that needs the server (or the store's default directory) raises
    ``ValueError``.

    Attributes:
        store: The ``FtpFileSystem`` this path belongs to, or None.
        path: The path text, without duplicate or trailing slashes.
    """

    __slots__ = ("store", "path")

    def __init__(self, store: Any, path: PathLike = "") -> None:
        if isinstance(path, RemotePath):
            path = path.path
        self.store = store
        self.path = _clean(path)

    def __str__(self) -> str:
        return self.path

    def __repr__(self) -> str:
        return f"RemotePath({self.path!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemotePath):
            return NotImplemented
        return self.store is other.store and self.path == other.path

    def __hash__(self) -> int:
        return hash((id(self.store), self.path))

    def __lt__(self, other: "RemotePath") -> bool:
        return self.path < other.path

    def __truediv__(self, other: PathLike) -> "RemotePath":
        return self.joinpath(other)

    def with_path(self, path: PathLike) -> "RemotePath":
        return RemotePath(self.store, path)

    def is_absolute(self) -> bool:
        return self.path.startswith("/")

    @property
    def parts(self) -> Tuple[str, ...]:
        """Segments of the path; an absolute path starts with ``"/"``."""
        segments = tuple(segment for segment in self.path.split("/") if segment)
        return ("/",) + segments if self.is_absolute() else segments

    @property
    def name(self) -> str:
        """Last segment, ``""`` for the root and the empty path."""
        if not self.path or self.path == "/":
            return ""
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> Optional["RemotePath"]:
        """The containing path, or None for the root and single relative names."""
        if not self.path or self.path == "/":
            return None
        index = self.path.rfind("/")
        if index < 0:
            return None
        return self.with_path(self.path[:index] or "/")

    def joinpath(self, *others: PathLike) -> "RemotePath":
        path = self.path
        for other in others:
            other = str(other)
            if other.startswith("/") or not path:
                path = other
            elif other:
                path = f"{path}/{other}"
        return self.with_path(path)

    def resolve_sibling(self, other: PathLike) -> "RemotePath":
        """``other`` taken relative to this path's directory."""
        other = str(other)
        parent = self.parent
        if other.startswith("/") or parent is None:
            return self.with_path(other)
        return parent.joinpath(other)

    def normalize(self) -> "RemotePath":
        """Collapse ``.`` and ``..`` segments lexically, without following links."""
        absolute = self.is_absolute()
        segments = []
        for segment in self.path.split("/"):
            if not segment or segment == ".":
                continue
            if segment == "..":
                if segments and segments[-1] != "..":
                    segments.pop()
                elif not absolute:
                    segments.append(segment)
                # ".." above the root stays at the root.
                continue
            segments.append(segment)
        path = "/".join(segments)
        return self.with_path("/" + path if absolute else path)

    def absolute(self) -> "RemotePath":
        """This path resolved against the store's default directory."""
        if self.is_absolute():
            return self
        return self._store().default_directory.joinpath(self.path)

    def relative_to(self, other: PathLike) -> "RemotePath":
        other = str(other)
        if self.path == other:
            return self.with_path("")
        prefix = other if other.endswith("/") else other + "/"
        if not self.path.startswith(prefix):
            raise ValueError(f"{self.path!r} is not relative to {other!r}")
        return self.with_path(self.path[len(prefix):])

    def uri(self) -> str:
        return self._store().uri + quote(str(self.absolute().normalize()))

    def _store(self):
        if self.store is None:
            raise ValueError(f"{self.path!r} is not bound to a file store")
        return self.store

    # Shortcuts for the store's operations.

    async def open_read(self, *options):
        return await self._store().open_read(self, *options)

    async def open_write(self, *options):
        return await self._store().open_write(self, *options)

    async def open_channel(self, *options):
        return await self._store().open_channel(self, *options)

    async def iterdir(self) -> AsyncIterator["RemotePath"]:
        for child in await self._store().list_directory(self):
            yield child

    async def mkdir(self, exist_ok: bool = False) -> None:
        try:
            await self._store().create_directory(self)
        except FileExistsError:
            if not exist_ok:
                raise

    async def unlink(self) -> None:
        await self._store().delete(self)

    async def stat(self, follow_links: bool = True):
        return await self._store().read_attributes(self, follow_links=follow_links)

    async def exists(self) -> bool:
        return await self._store().exists(self)

    async def is_dir(self) -> bool:
        try:
            return (await self.stat()).is_dir
        except FileNotFoundError:
            return False

    async def is_file(self) -> bool:
        try:
            return (await self.stat()).is_file
        except FileNotFoundError:
            return False

    async def readlink(self) -> "RemotePath":
        return await self._store().read_symlink(self)

    async def resolve(self, follow_links: bool = True) -> "RemotePath":
        return await self._store().real_path(self, follow_links=follow_links)

    async def read_bytes(self) -> bytes:
        return await self._store().read_bytes(self)

    async def write_bytes(self, data: bytes) -> int:
        return await self._store().write_bytes(self, data)

    async def copy(self, target: PathLike, *options) -> "RemotePath":
        target = target if isinstance(target, RemotePath) else self.with_path(target)
        await self._store().copy(self, target, *options)
        return target

    async def move(self, target: PathLike, *options) -> "RemotePath":
        target = target if isinstance(target, RemotePath) else self.with_path(target)
        await self._store().move(self, target, *options)
        return target
