import enum
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple, TypeVar

from .errors import IllegalOptionCombination, UnsupportedOptionError

T = TypeVar("T")


class TextFormat(enum.Enum):
    """Vertical format control for ASCII and EBCDIC transfers."""

    NON_PRINT = "N"
    TELNET = "T"
    CARRIAGE_CONTROL = "C"


@dataclass(frozen=True)
class FileType:
    """
    Representation type of a transfer (the FTP ``TYPE`` command).

    Use the constructors rather than building instances directly:
    ``FileType.ascii()``, ``FileType.ebcdic(TextFormat.TELNET)``,
    ``FileType.binary()`` or ``FileType.local(8)``.

    Attributes:
        code: Single-letter type code (A, E, I or L).
        format: Text format for ASCII and EBCDIC, None otherwise.
        size: Logical byte size for the local type, None otherwise.
    """

    code: str
    format: Optional[TextFormat] = None
    size: Optional[int] = None

    @classmethod
    def ascii(cls, format: Optional[TextFormat] = None) -> "FileType":
        return cls("A", format)

    @classmethod
    def ebcdic(cls, format: Optional[TextFormat] = None) -> "FileType":
        return cls("E", format)

    @classmethod
    def binary(cls) -> "FileType":
        return cls("I")

    @classmethod
    def local(cls, size: int = 0) -> "FileType":
        return cls("L", None, size if size > 0 else None)

    @property
    def argument(self) -> str:
        """Argument of the TYPE command, e.g. ``A N`` or ``L 8``."""
        if self.format is not None:
            return f"{self.code} {self.format.value}"
        if self.size is not None:
            return f"{self.code} {self.size}"
        return self.code

    @property
    def command(self) -> str:
        return f"TYPE {self.argument}"


class FileStructure(enum.Enum):
    """File structure of a transfer (the FTP ``STRU`` command)."""

    FILE = "F"
    RECORD = "R"
    PAGE = "P"

    @property
    def command(self) -> str:
        return f"STRU {self.value}"


class TransferMode(enum.Enum):
    """Transfer mode (the FTP ``MODE`` command)."""

    STREAM = "S"
    BLOCK = "B"
    COMPRESSED = "C"
    DEFLATE = "Z"

    @property
    def command(self) -> str:
        return f"MODE {self.value}"


class OpenFlag(enum.Enum):
    READ = "read"
    WRITE = "write"
    APPEND = "append"
    TRUNCATE_EXISTING = "truncate_existing"
    CREATE = "create"
    CREATE_NEW = "create_new"
    DELETE_ON_CLOSE = "delete_on_close"
    SPARSE = "sparse"
    SYNC = "sync"
    DSYNC = "dsync"


class CopyFlag(enum.Enum):
    REPLACE_EXISTING = "replace_existing"
    ATOMIC_MOVE = "atomic_move"
    COPY_ATTRIBUTES = "copy_attributes"


class LinkFlag(enum.Enum):
    NOFOLLOW_LINKS = "nofollow_links"


# Accepted everywhere, but without effect on an FTP server.
IGNORED_OPEN_FLAGS = frozenset({OpenFlag.SPARSE, OpenFlag.SYNC, OpenFlag.DSYNC, LinkFlag.NOFOLLOW_LINKS})

# Transfer option values are also valid open and copy options.
TRANSFER_OPTION_TYPES = (FileType, FileStructure, TransferMode)


def set_once(value: T, existing: Optional[T], options: Iterable[Any]) -> T:
    """Store ``value`` for its category, rejecting a different earlier value."""
    if existing is not None and existing != value:
        raise IllegalOptionCombination(f"Illegal combination of options: {list(options)}")
    return value


@dataclass(frozen=True)
class TransferOptions:
    """The (file type, structure, mode) triple requested for one call.

    None means "keep whatever the session currently uses".
    """

    file_type: Optional[FileType] = None
    structure: Optional[FileStructure] = None
    mode: Optional[TransferMode] = None


class _TransferCollector:
    """Collects transfer option values from an option list, once per category."""

    def __init__(self, options: Tuple[Any, ...]) -> None:
        self.options = options
        self.file_type: Optional[FileType] = None
        self.structure: Optional[FileStructure] = None
        self.mode: Optional[TransferMode] = None

    def offer(self, option: Any) -> bool:
        if isinstance(option, FileType):
            self.file_type = set_once(option, self.file_type, self.options)
        elif isinstance(option, FileStructure):
            self.structure = set_once(option, self.structure, self.options)
        elif isinstance(option, TransferMode):
            self.mode = set_once(option, self.mode, self.options)
        else:
            return False
        return True


@dataclass(frozen=True)
class OpenOptions(TransferOptions):
    """Validated options for opening a stream or channel."""

    read: bool = False
    write: bool = False
    append: bool = False
    create: bool = False
    create_new: bool = False
    delete_on_close: bool = False
    options: Tuple[Any, ...] = ()

    @classmethod
    def for_input(cls, *options: Any) -> "OpenOptions":
        """Resolve options for a read stream. Only READ, DELETE_ON_CLOSE and
        transfer options are meaningful here."""
        if not options:
            return cls(read=True)

        collector = _TransferCollector(options)
        delete_on_close = False
        for option in options:
            if option is OpenFlag.DELETE_ON_CLOSE:
                delete_on_close = True
            elif collector.offer(option):
                continue
            elif option is not OpenFlag.READ and option not in IGNORED_OPEN_FLAGS:
                raise UnsupportedOptionError(f"Unsupported open option: {option}")

        return cls(
            file_type=collector.file_type,
            structure=collector.structure,
            mode=collector.mode,
            read=True,
            delete_on_close=delete_on_close,
            options=options,
        )

    @classmethod
    def for_output(cls, *options: Any) -> "OpenOptions":
        """Resolve options for a write stream.

        Without options this behaves like CREATE + TRUNCATE_EXISTING + WRITE.
        APPEND and TRUNCATE_EXISTING contradict each other.
        """
        if not options:
            return cls(write=True, create=True)

        collector = _TransferCollector(options)
        flags = set()
        for option in options:
            if collector.offer(option):
                continue
            if option in (
                OpenFlag.APPEND,
                OpenFlag.TRUNCATE_EXISTING,
                OpenFlag.CREATE,
                OpenFlag.CREATE_NEW,
                OpenFlag.DELETE_ON_CLOSE,
            ):
                flags.add(option)
            elif option is not OpenFlag.WRITE and option not in IGNORED_OPEN_FLAGS:
                raise UnsupportedOptionError(f"Unsupported open option: {option}")

        if OpenFlag.APPEND in flags and OpenFlag.TRUNCATE_EXISTING in flags:
            raise IllegalOptionCombination(f"Illegal combination of options: {list(options)}")

        return cls(
            file_type=collector.file_type,
            structure=collector.structure,
            mode=collector.mode,
            write=True,
            append=OpenFlag.APPEND in flags,
            create=OpenFlag.CREATE in flags,
            create_new=OpenFlag.CREATE_NEW in flags,
            delete_on_close=OpenFlag.DELETE_ON_CLOSE in flags,
            options=options,
        )

    @classmethod
    def for_channel(cls, *options: Any) -> "OpenOptions":
        """Resolve options for a channel.

        Defaults to READ when none of READ, WRITE and APPEND is given. APPEND
        implies WRITE and may not be combined with READ or TRUNCATE_EXISTING.
        READ together with WRITE is rejected, since an FTP session only
        transfers in one direction at a time.
        """
        collector = _TransferCollector(options)
        flags = set()
        for option in options:
            if collector.offer(option):
                continue
            if isinstance(option, OpenFlag):
                if option not in IGNORED_OPEN_FLAGS:
                    flags.add(option)
            elif option not in IGNORED_OPEN_FLAGS:
                raise UnsupportedOptionError(f"Unsupported open option: {option}")

        read = OpenFlag.READ in flags
        write = OpenFlag.WRITE in flags
        append = OpenFlag.APPEND in flags
        if not (read or write or append):
            read = True

        if append and (read or OpenFlag.TRUNCATE_EXISTING in flags):
            raise IllegalOptionCombination(f"Illegal combination of options: {list(options)}")
        if append:
            write = True
        if read and write:
            raise IllegalOptionCombination(f"Illegal combination of options: {list(options)}")

        return cls(
            file_type=collector.file_type,
            structure=collector.structure,
            mode=collector.mode,
            read=read,
            write=write,
            append=append,
            create=OpenFlag.CREATE in flags,
            create_new=OpenFlag.CREATE_NEW in flags,
            delete_on_close=OpenFlag.DELETE_ON_CLOSE in flags,
            options=options,
        )


@dataclass(frozen=True)
class CopyOptions(TransferOptions):
    """Validated options for copy and move."""

    replace_existing: bool = False
    options: Tuple[Any, ...] = ()

    def to_open_options(self, *additional: Any) -> Tuple[Any, ...]:
        """The transfer options of this copy, plus ``additional`` open flags."""
        carried = tuple(option for option in self.options if isinstance(option, TRANSFER_OPTION_TYPES))
        return carried + additional

    @classmethod
    def for_copy(cls, *options: Any) -> "CopyOptions":
        return cls._resolve(options, allow_atomic=False)

    @classmethod
    def for_move(cls, same_store: bool, *options: Any) -> "CopyOptions":
        """ATOMIC_MOVE is only honoured when both paths live in the same store."""
        return cls._resolve(options, allow_atomic=same_store)

    @classmethod
    def _resolve(cls, options: Tuple[Any, ...], allow_atomic: bool) -> "CopyOptions":
        collector = _TransferCollector(options)
        replace_existing = False
        for option in options:
            if option is CopyFlag.REPLACE_EXISTING:
                replace_existing = True
            elif collector.offer(option):
                continue
            elif option is CopyFlag.ATOMIC_MOVE and allow_atomic:
                continue
            elif option is not LinkFlag.NOFOLLOW_LINKS:
                raise UnsupportedOptionError(f"Unsupported copy option: {option}")

        return cls(
            file_type=collector.file_type,
            structure=collector.structure,
            mode=collector.mode,
            replace_existing=replace_existing,
            options=options,
        )


def follow_links(*options: Any) -> bool:
    return LinkFlag.NOFOLLOW_LINKS not in options
