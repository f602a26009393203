import errno
import os
from typing import Iterable, List, Optional, Protocol

from . import codes


class FTPFileSystemError(OSError):
    """
    A failed FTP command, carrying the affected path(s) and the server reply.

    This is the generic protocol failure. More specific outcomes (not found,
    already exists, access denied, ...) subclass it together with the matching
    built-in ``OSError`` subclass, so callers can catch either the FTP flavour
    or the plain Python one.

    Attributes:
        reply_code: Numeric FTP reply code, 0 when the failure did not come from a reply.
        reply_text: Raw reply text as sent by the server.
        suppressed: Secondary errors that happened while handling this one.
    """

    errno_value = errno.EIO

    def __init__(
        self,
        path: Optional[str] = None,
        other: Optional[str] = None,
        reply_code: int = 0,
        reply_text: Optional[str] = None,
    ) -> None:
        if not reply_text:
            reply_text = codes.get(reply_code) or os.strerror(self.errno_value)
        super().__init__(self.errno_value, reply_text.strip(), path, None, other)
        self.reply_code = reply_code
        self.reply_text = reply_text
        self.suppressed: List[BaseException] = []


class FTPFileNotFoundError(FTPFileSystemError, FileNotFoundError):
    errno_value = errno.ENOENT


class FTPFileExistsError(FTPFileSystemError, FileExistsError):
    errno_value = errno.EEXIST


class FTPNotADirectoryError(FTPFileSystemError, NotADirectoryError):
    errno_value = errno.ENOTDIR


class FTPIsADirectoryError(FTPFileSystemError, IsADirectoryError):
    errno_value = errno.EISDIR


class FTPNotALinkError(FTPFileSystemError):
    errno_value = errno.EINVAL


class FTPAccessDeniedError(FTPFileSystemError, PermissionError):
    errno_value = errno.EACCES


class FTPDirectoryNotEmptyError(FTPFileSystemError):
    errno_value = errno.ENOTEMPTY


class FTPLinkLoopError(FTPFileSystemError):
    errno_value = errno.ELOOP


class PoolTimeoutError(TimeoutError):
    """No pooled connection became available within the configured wait time."""


class PoolClosedError(ConnectionError):
    """The connection pool has been shut down."""


class DialectStateError(RuntimeError):
    """A dialect was used before it was initialized, or initialized twice."""


class IllegalOptionCombination(ValueError):
    """Options given to a single call contradict each other."""


class UnsupportedOptionError(ValueError):
    """An option is not supported for the requested operation."""


class StoreExistsError(FileExistsError):
    """A file system for the same server and user is already open."""


class StoreNotFoundError(LookupError):
    """No open file system matches the URI."""


def suppress(primary: BaseException, secondary: BaseException) -> BaseException:
    """Attach ``secondary`` to ``primary`` without masking it.

    Errors that aren't ``FTPFileSystemError`` (wire errors, plain ``OSError``)
    get a ``suppressed`` list created on the fly.
    """
    if primary is secondary:
        return primary
    suppressed = getattr(primary, "suppressed", None)
    if suppressed is None:
        suppressed = []
        primary.suppressed = suppressed
    suppressed.append(secondary)
    return primary


def aggregate(errors: Iterable[BaseException]) -> Optional[BaseException]:
    """Return the first error with every later one suppressed onto it."""
    primary = None
    for error in errors:
        if primary is None:
            primary = error
        else:
            suppress(primary, error)
    return primary


class ExceptionFactory(Protocol):
    """Translates a failed reply into the error raised to the caller."""

    def create_get_file_error(self, path: str, reply_code: int, reply_text: str) -> OSError: ...

    def create_change_working_directory_error(self, path: str, reply_code: int, reply_text: str) -> OSError: ...

    def create_create_directory_error(self, path: str, reply_code: int, reply_text: str) -> OSError: ...

    def create_delete_error(self, path: str, reply_code: int, reply_text: str, is_directory: bool) -> OSError: ...

    def create_new_input_stream_error(self, path: str, reply_code: int, reply_text: str) -> OSError: ...

    def create_new_output_stream_error(self, path: str, reply_code: int, reply_text: str, options) -> OSError: ...

    def create_copy_error(self, path: str, other: str, reply_code: int, reply_text: str) -> OSError: ...

    def create_move_error(self, path: str, other: str, reply_code: int, reply_text: str) -> OSError: ...


class DefaultExceptionFactory:
    """
    Default reply-to-error mapping.

    A failed lookup becomes a not-found error, since a missing entry is by far
    the most common reason for an empty or refused listing. Everything else is
    reported as a generic ``FTPFileSystemError`` carrying the raw reply, because
    FTP reply codes (550 in particular) are too ambiguous to map reliably.
    """

    def create_get_file_error(self, path, reply_code, reply_text):
        return FTPFileNotFoundError(path, None, reply_code, reply_text)

    def create_change_working_directory_error(self, path, reply_code, reply_text):
        return FTPFileSystemError(path, None, reply_code, reply_text)

    def create_create_directory_error(self, path, reply_code, reply_text):
        return FTPFileSystemError(path, None, reply_code, reply_text)

    def create_delete_error(self, path, reply_code, reply_text, is_directory):
        return FTPFileSystemError(path, None, reply_code, reply_text)

    def create_new_input_stream_error(self, path, reply_code, reply_text):
        return FTPFileSystemError(path, None, reply_code, reply_text)

    def create_new_output_stream_error(self, path, reply_code, reply_text, options):
        return FTPFileSystemError(path, None, reply_code, reply_text)

    def create_copy_error(self, path, other, reply_code, reply_text):
        return FTPFileSystemError(path, other, reply_code, reply_text)

    def create_move_error(self, path, other, reply_code, reply_text):
        return FTPFileSystemError(path, other, reply_code, reply_text)
