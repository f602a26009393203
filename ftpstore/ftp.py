from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote, urlparse

from .auth import Basic
from .config import Limits, Settings, Timeout, Transfer
from .core import AuthType, FtpFileSystem, HookType, WireFactory
from .errors import StoreExistsError, StoreNotFoundError, aggregate
from .path import RemotePath
from .settings import SSL


def normalize(endpoint: str, username: Optional[str] = None, allow_path: bool = False) -> str:
    """Reduce an FTP URL to the key of its file system: ``scheme://user@host:port``.

    The password never takes part. ``username`` wins over the URL's own.

    Raises:
        TypeError: If endpoint isn't a string
        ValueError: For other schemes, a missing host, a query or fragment,
                    or a path where none is allowed
    """
    if not isinstance(endpoint, str):
        raise TypeError("Endpoint must be a string.")

    url = urlparse(endpoint)
    if url.scheme not in {"ftp", "ftps"}:
        raise ValueError("Endpoint must start with 'ftp://' or 'ftps://'.")
    if not url.hostname:
        raise ValueError(f"Endpoint has no host: {endpoint}")
    if url.query or url.fragment:
        raise ValueError(f"Endpoint may not have a query or fragment: {endpoint}")
    if not allow_path and url.path not in ("", "/"):
        raise ValueError(f"Endpoint may not have a path: {endpoint}")

    port = url.port or (21 if url.scheme == "ftp" else 990)
    user = username if username is not None else (unquote(url.username) if url.username else None)
    userinfo = f"{quote(user, safe='')}@" if user else ""
    return f"{url.scheme}://{userinfo}{url.hostname}:{port}"


class FtpProvider:
    """
    Opens FTP file systems and keeps track of them by URI.

    Provides a shared configuration for every file system it opens, and keeps
    at most one open file system per server and user, so that code holding
    only a URI can find the file system (and its connection pool) again.
    File systems remove themselves from the provider when closed.
    """

    def __init__(
        self,
        limits: Optional[Limits] = None,
        timeout: Optional[Timeout] = None,
        ssl: Optional[SSL] = None,
        transfer: Optional[Transfer] = None,
        settings: Optional[Settings] = None,
        hooks: Optional[Dict[str, HookType]] = None,
        wire_factory: Optional[WireFactory] = None,
    ) -> None:
        """Set up the shared configuration.

        Args:
            limits: Pool size and wait time for every file system
            timeout: Connect and socket timeouts
            ssl: TLS settings for ftps:// endpoints
            transfer: Transfer options new sessions start out with
            settings: Dialect, error mapping, default directory and the like
            hooks: Async callbacks passed on to every file system
            wire_factory: Builds unconnected wire clients, for tests and custom engines
        """
        self.limits = limits
        self.timeout = timeout
        self.ssl = ssl
        self.transfer = transfer
        self.settings = settings
        self.hooks = hooks or {}
        self.wire_factory = wire_factory
        self.stores: Dict[str, FtpFileSystem] = {}

    def __len__(self) -> int:
        return len(self.stores)

    def __contains__(self, endpoint: str) -> bool:
        try:
            return normalize(endpoint, allow_path=True) in self.stores
        except ValueError:
            return False

    async def open(self, endpoint: str, auth: Optional[AuthType] = None, **overrides: Any) -> FtpFileSystem:
        """Open a file system for ``endpoint``.

        Args:
            endpoint: Server URL without path, e.g. "ftp://user@host:2121"
            auth: Credentials; the URL's own are used when None
            **overrides: Per-file-system replacements for the shared configuration
                         (limits, timeout, ssl, transfer, settings, hooks, wire_factory)

        Returns:
            FtpFileSystem: Open and registered

        Raises:
            StoreExistsError: If a file system for the same server and user is open
        """
        username = auth.user if isinstance(auth, Basic) else None
        key = normalize(endpoint, username)
        if key in self.stores:
            raise StoreExistsError(f"File system already exists: {key}")

        config = {
            "limits": self.limits,
            "timeout": self.timeout,
            "ssl": self.ssl,
            "transfer": self.transfer,
            "settings": self.settings,
            "hooks": self.hooks,
            "wire_factory": self.wire_factory,
        }
        unknown = set(overrides) - set(config)
        if unknown:
            raise TypeError(f"Unexpected configuration: {', '.join(sorted(unknown))}")
        config.update(overrides)

        store = FtpFileSystem(endpoint, auth=auth, **config)
        # Claimed before connecting, so a concurrent open of the same key fails fast.
        self.stores[key] = store
        try:
            await store.open()
        except BaseException:
            del self.stores[key]
            raise
        store.provider = self
        return store

    def get(self, uri: str) -> FtpFileSystem:
        """The open file system for ``uri``, which may carry a path.

        Raises:
            StoreNotFoundError: If no such file system is open
        """
        key = normalize(uri, allow_path=True)
        try:
            return self.stores[key]
        except KeyError:
            raise StoreNotFoundError(uri) from None

    def path(self, uri: str) -> RemotePath:
        """The path ``uri`` points at, on its open file system."""
        store = self.get(uri)
        return store.path(unquote(urlparse(uri).path) or "/")

    def remove(self, store: FtpFileSystem) -> None:
        for key, registered in list(self.stores.items()):
            if registered is store:
                del self.stores[key]

    async def keep_alive(self, path: RemotePath) -> None:
        """Keep the sessions of ``path``'s file system alive.

        Raises:
            StoreNotFoundError: If the path's file system isn't open in this provider
        """
        store = path.store
        if store is None or store not in self.stores.values():
            raise StoreNotFoundError(str(path))
        await store.keep_alive()

    async def close(self) -> None:
        """Close every open file system; the first failure is raised."""
        errors: List[BaseException] = []
        for store in list(self.stores.values()):
            try:
                await store.close()
            except Exception as error:
                errors.append(error)
        self.stores.clear()
        primary = aggregate(errors)
        if primary is not None:
            raise primary

    async def __aenter__(self) -> "FtpProvider":
        return self

    async def __aexit__(self, type, value, trace) -> None:
        await self.close()
