__version__ = "1.0.0"
__author__ = "Andrew Hernandez"
__email__ = "andromedeyz@hotmail.com"
__license__ = "MIT"
__description__ = "An async FTP file system for Python: path-based streams, listings, copies and moves over a pool of reusable sessions."
__url__ = "http://github.com/ApaxPhoenix/FtpStore"

# FTP response codes - what the server is trying to tell you
# (defined before the imports below; errors uses them for default messages)
codes = {
    # 1xx - "Hold on, I'm working on it"
    110: "Restart marker reply",
    120: "Service ready in n minutes",
    125: "Data connection already open; transfer starting",
    150: "File status okay; about to open data connection",
    # 2xx - "Success! Everything went great"
    200: "Command okay",
    202: "Command not implemented, superfluous at this site",
    211: "System status, or system help reply",
    212: "Directory status",
    213: "File status",
    214: "Help message",
    215: "NAME system type",
    220: "Service ready for new user",
    221: "Service closing control connection",
    225: "Data connection open; no transfer in progress",
    226: "Closing data connection",
    227: "Entering Passive Mode",
    230: "User logged in, proceed",
    250: "Requested file action okay, completed",
    257: "PATHNAME created",
    # 3xx - "I need more info from you"
    331: "User name okay, need password",
    332: "Need account for login",
    350: "Requested file action pending further information",
    # 4xx - "Something's wrong, but we can try again"
    421: "Service not available, closing control connection",
    425: "Can't open data connection",
    426: "Connection closed; transfer aborted",
    450: "Requested file action not taken",
    451: "Requested action aborted: local error in processing",
    452: "Requested action not taken; insufficient storage space",
    # 5xx - "Nope, that's not going to work"
    500: "Syntax error, command unrecognized",
    501: "Syntax error in parameters or arguments",
    502: "Command not implemented",
    503: "Bad sequence of commands",
    504: "Command not implemented for that parameter",
    530: "Not logged in",
    532: "Need account for storing files",
    550: "Requested action not taken; file unavailable",
    551: "Requested action aborted: page type unknown",
    552: "Requested file action aborted; exceeded storage allocation",
    553: "Requested action not taken; file name not allowed",
}

# Keeps one file system per server and user
from .ftp import FtpProvider

# The file system itself and what it hands back
from .core import (
    FtpFileSystem,  # An FTP server as a navigable file system
    RemoteAttributes,  # What read_attributes returns
    FileStoreInfo,  # What file_store returns
    AccessMode,  # Modes for check_access
    Permission,  # POSIX-style permission values
)
from .path import RemotePath
from .streams import RemoteInputStream, RemoteOutputStream, RemoteChannel
from .pool import ConnectionPool, PooledConnection
from .dialect import Dialect, Kind

# Per-call options
from .options import (
    FileType,  # TYPE: ascii, ebcdic, binary, local
    FileStructure,  # STRU: file, record, page
    TransferMode,  # MODE: stream, block, compressed, deflate
    TextFormat,  # Format control for ascii and ebcdic
    OpenFlag,  # How to open a stream or channel
    CopyFlag,  # How to copy or move
    LinkFlag,  # Whether to follow symbolic links
)

# Fine-tune how your FTP sessions behave
from .config import (
    Timeout,  # Set how long to wait for connections and transfers
    Limits,  # Control connection pooling
    Transfer,  # Default transfer options for new sessions
    Settings,  # Dialect, error mapping, default directory
)

# Different ways to handle user authentication
from .auth import (
    Basic,  # Classic username and password login
    Guest,  # Anonymous access for public servers
)

# Keep your connections secure
from .settings import (
    SSL,  # Add encryption with SSL/TLS support
)

# What can go wrong
from .errors import (
    FTPFileSystemError,
    FTPFileNotFoundError,
    FTPFileExistsError,
    FTPNotADirectoryError,
    FTPIsADirectoryError,
    FTPNotALinkError,
    FTPAccessDeniedError,
    FTPDirectoryNotEmptyError,
    FTPLinkLoopError,
    PoolTimeoutError,
    PoolClosedError,
    DialectStateError,
    IllegalOptionCombination,
    UnsupportedOptionError,
    StoreExistsError,
    StoreNotFoundError,
    ExceptionFactory,
    DefaultExceptionFactory,
)

# Everything you can import and use
__all__ = [
    # Entry points
    "FtpProvider",
    "FtpFileSystem",
    "RemotePath",
    # Results
    "RemoteAttributes",
    "FileStoreInfo",
    "AccessMode",
    "Permission",
    "RemoteInputStream",
    "RemoteOutputStream",
    "RemoteChannel",
    # Internals worth reaching
    "ConnectionPool",
    "PooledConnection",
    "Dialect",
    "Kind",
    # Options
    "FileType",
    "FileStructure",
    "TransferMode",
    "TextFormat",
    "OpenFlag",
    "CopyFlag",
    "LinkFlag",
    # Configuration options
    "Timeout",
    "Limits",
    "Transfer",
    "Settings",
    # Authentication types
    "Basic",
    "Guest",
    # Security settings
    "SSL",
    # Errors
    "FTPFileSystemError",
    "FTPFileNotFoundError",
    "FTPFileExistsError",
    "FTPNotADirectoryError",
    "FTPIsADirectoryError",
    "FTPNotALinkError",
    "FTPAccessDeniedError",
    "FTPDirectoryNotEmptyError",
    "FTPLinkLoopError",
    "PoolTimeoutError",
    "PoolClosedError",
    "DialectStateError",
    "IllegalOptionCombination",
    "UnsupportedOptionError",
    "StoreExistsError",
    "StoreNotFoundError",
    "ExceptionFactory",
    "DefaultExceptionFactory",
    # Package info
    "codes",
    "__version__",
    "__author__",
    "__email__",
    "__license__",
    "__description__",
    "__url__",
]

# Make sure you're running a modern Python version
import sys

if sys.version_info < (3, 9):
    raise RuntimeError("FtpStore needs Python 3.9 or newer to work properly")
