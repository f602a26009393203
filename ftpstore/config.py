from dataclasses import dataclass, field
from typing import Optional, Sequence

from .errors import DefaultExceptionFactory, ExceptionFactory
from .options import FileStructure, FileType, TransferMode

DIALECTS = ("unix", "non-unix", "auto-detect")


@dataclass
class Limits:
    """
    Connection pool configuration.

    Every file store talks to its server over a small, fixed set of sessions.
    Operations borrow a session for their duration, and open streams keep
    theirs until closed, so the pool size bounds how many streams can be open
    at once without falling back to temporary overflow sessions.

    Attributes:
        connections: Number of pooled sessions opened to the server.
                     Servers often cap sessions per user, so keep this small.
        wait: Seconds to wait for a free session before giving up.
              0 waits indefinitely.
    """

    connections: int = 5  # Pooled sessions per file store
    wait: float = 0.0  # Seconds to wait for a free session, 0 = forever

    def __post_init__(self) -> None:
        """
        Validate pool limits after initialization.

        Returns:
            None

        Raises:
            ValueError: If the pool would be empty or the wait time is negative.
        """
        if self.connections <= 0:
            raise ValueError("Pool connections must be positive")

        if self.wait < 0:
            raise ValueError("Pool wait time cannot be negative")


@dataclass
class Timeout:
    """
    Timeout configuration for FTP sessions.

    Attributes:
        connect: Time to wait for the control connection and greeting.
        socket: Time to wait on any single read or write, on both the control
                and the data connections. None disables the limit.
    """

    connect: float = 30.0  # Control connection establishment
    socket: Optional[float] = None  # Per read/write, None = no limit

    def __post_init__(self) -> None:
        """
        Validate timeouts after initialization.

        Raises:
            ValueError: If a timeout is not positive.
        """
        if self.connect <= 0:
            raise ValueError("Connect timeout must be positive")
        if self.socket is not None and self.socket <= 0:
            raise ValueError("Socket timeout must be positive")


@dataclass
class Transfer:
    """
    Default transfer options.

    A session is put into these before its first transfer; after that it
    keeps whatever the last call asked for, and only changes cost a round
    trip. With no file type configured sessions switch to binary. A structure
    or mode of None leaves the server's own default (file, stream) alone.

    Attributes:
        file_type: Representation type, e.g. ``FileType.binary()``.
        structure: File structure, e.g. ``FileStructure.FILE``.
        mode: Transfer mode, e.g. ``TransferMode.STREAM``.
    """

    file_type: Optional[FileType] = None
    structure: Optional[FileStructure] = None
    mode: Optional[TransferMode] = None

    def __post_init__(self) -> None:
        if self.file_type is not None and not isinstance(self.file_type, FileType):
            raise ValueError(f"Invalid file type: {self.file_type!r}")
        if self.structure is not None and not isinstance(self.structure, FileStructure):
            raise ValueError(f"Invalid file structure: {self.structure!r}")
        if self.mode is not None and not isinstance(self.mode, TransferMode):
            raise ValueError(f"Invalid transfer mode: {self.mode!r}")


@dataclass
class Settings:
    """
    Behaviour of a file store that isn't about connections or credentials.

    Attributes:
        dialect: How directory listings are interpreted: "unix" for servers
                 that list "." inside directories, "non-unix" for servers
                 that don't, "auto-detect" to probe the root directory once.
        exceptions: Translates failed replies into errors.
        default_dir: Directory to change to after login. Relative paths are
                     resolved against it (or against the login directory).
        list_hidden: Send ``LIST -a`` so dot files show up.
        encoding: Control connection encoding.
        passive: Passive mode commands to try, in order.
    """

    dialect: str = "auto-detect"
    exceptions: ExceptionFactory = field(default_factory=DefaultExceptionFactory)
    default_dir: Optional[str] = None
    list_hidden: bool = False
    encoding: str = "utf-8"
    passive: Sequence[str] = ("epsv", "pasv")

    def __post_init__(self) -> None:
        """
        Validate settings after initialization.

        Raises:
            ValueError: For unknown dialects, empty passive command lists,
                        or a default directory that isn't a path.
        """
        if self.dialect not in DIALECTS:
            raise ValueError(f"Unknown dialect {self.dialect!r}, expected one of {', '.join(DIALECTS)}")

        if not self.passive:
            raise ValueError("At least one passive command is required")

        for command in self.passive:
            if command not in ("epsv", "pasv"):
                raise ValueError(f"Unknown passive command: {command}")

        if self.default_dir is not None and not self.default_dir.strip():
            raise ValueError("Default directory cannot be empty or whitespace")
