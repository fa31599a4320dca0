"""
Plain data types shared by the DualFM core.
"""
import os
import stat
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class SortMode(str, Enum):
    """Listing order applied by panes and archive listings."""

    UNSORTED = "unsorted"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    EXTENSION_ASC = "extension_asc"
    EXTENSION_DESC = "extension_desc"
    SIZE_ASC = "size_asc"
    SIZE_DESC = "size_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"

    @property
    def descending(self):
        return self.value.endswith("_desc")

    @property
    def label(self):
        if self is SortMode.UNSORTED:
            return "Unsorted"
        key, _, direction = self.value.partition("_")
        arrow = "v" if direction == "desc" else "^"
        return f"{key.capitalize()} {arrow}"


class ComparisonCriteria(str, Enum):
    """Equivalence relation used when comparing two panes."""

    NAME = "name"
    SIZE = "size"
    TIMESTAMP = "timestamp"


class ArchiveFormat(str, Enum):
    """Archive container formats understood by the bundled providers."""

    ZIP = ".zip"
    TAR = ".tar"
    TGZ = ".tar.gz"
    TBZ2 = ".tar.bz2"
    TXZ = ".tar.xz"
    SEVEN_ZIP = ".7z"
    RAR = ".rar"
    GZ = ".gz"
    BZ2 = ".bz2"
    XZ = ".xz"

    @classmethod
    def from_path(cls, path):
        """Resolve the format from an archive file name, or None."""
        lower = str(path).lower()
        aliases = {".tgz": cls.TGZ, ".tbz2": cls.TBZ2, ".txz": cls.TXZ}
        for suffix, fmt in aliases.items():
            if lower.endswith(suffix):
                return fmt
        # Longest suffix first so ".tar.gz" wins over ".tar".
        for fmt in sorted(cls, key=lambda item: len(item.value), reverse=True):
            if lower.endswith(fmt.value):
                return fmt
        return None


class CollisionAction(str, Enum):
    """Possible answers to a destination collision."""

    OVERWRITE = "overwrite"
    OVERWRITE_ALL = "overwrite_all"
    SKIP = "skip"
    SKIP_ALL = "skip_all"
    RENAME = "rename"
    CANCEL = "cancel"


@dataclass(frozen=True)
class CollisionDecision:
    """Answer returned by a collision callback; ``new_name`` is used by RENAME."""

    action: CollisionAction
    new_name: Optional[str] = None


def split_name(name, is_directory=False) -> Tuple[str, str]:
    """Return ``(stem, extension)`` where extension keeps its leading dot."""
    if is_directory:
        return name, ""
    stem, ext = os.path.splitext(name)
    if not stem:
        # Dotfiles such as ".bashrc" have no extension.
        return name, ""
    return stem, ext


def format_size(size):
    """Human readable size used by listings and dialogs."""
    if size >= 1073741824:
        return f"{size / 1073741824:.1f}G"
    if size >= 1048576:
        return f"{size / 1048576:.1f}M"
    if size >= 1024:
        return f"{size / 1024:.1f}K"
    return f"{size}B"


@dataclass
class FileEntry:
    """One filesystem or archive item as shown by a pane.

    Entries are rebuilt on every listing; only ``is_marked`` changes afterwards.
    For archive-internal entries ``full_path`` is the ``/``-separated path
    inside the archive.
    """

    full_path: str
    name: str
    extension: str = ""
    size: int = 0
    last_modified: datetime = field(default_factory=lambda: datetime.fromtimestamp(0))
    attributes: int = 0
    is_directory: bool = False
    is_archive: bool = False
    is_virtual_folder: bool = False
    is_marked: bool = False

    def __post_init__(self):
        if self.is_virtual_folder and not self.is_directory:
            raise ValueError(f"virtual folder entry must be a directory: {self.full_path}")
        if self.is_directory:
            self.size = 0

    @classmethod
    def from_path(cls, path, registry=None, st=None):
        """Build an entry from the real filesystem (raises OSError)."""
        path = os.path.abspath(path)
        if st is None:
            st = os.stat(path)
        name = os.path.basename(path.rstrip(os.sep)) or path
        is_dir = stat.S_ISDIR(st.st_mode)
        _, ext = split_name(name, is_dir)
        return cls(
            full_path=path,
            name=name,
            extension=ext,
            size=0 if is_dir else st.st_size,
            last_modified=datetime.fromtimestamp(st.st_mtime),
            attributes=st.st_mode,
            is_directory=is_dir,
            is_archive=bool(not is_dir and registry is not None and registry.is_archive(path)),
        )

    @property
    def is_hidden(self):
        return self.name.startswith(".")

    def format_row(self, width):
        """Render a fixed-width detail row: name, size (or <DIR>) and date."""
        size_text = "<DIR>" if self.is_directory else format_size(self.size)
        date_text = self.last_modified.strftime("%Y-%m-%d %H:%M")
        marker = "*" if self.is_marked else " "
        suffix = "/" if self.is_directory else ""
        tail = f" {size_text:>8} {date_text}"
        name_w = max(1, width - len(tail) - 1)
        name = f"{self.name}{suffix}"
        if len(name) > name_w:
            name = name[: max(1, name_w - 1)] + "~"
        return f"{marker}{name:<{name_w}}{tail}"[:width]


@dataclass(frozen=True)
class ProgressEvent:
    """One completed unit of work reported by a running operation."""

    current_file: str
    current_file_index: int
    total_files: int
    bytes_processed: int = 0
    total_bytes: int = 0

    @property
    def percent_complete(self):
        if self.total_bytes > 0:
            pct = self.bytes_processed * 100.0 / self.total_bytes
        elif self.total_files > 0:
            pct = self.current_file_index * 100.0 / self.total_files
        else:
            pct = 100.0
        return max(0.0, min(100.0, pct))


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a batch operation; ``message`` doubles as a status line."""

    success: bool
    message: str
    files_processed: int = 0
    bytes_processed: int = 0
    files_skipped: int = 0
    errors: Tuple[str, ...] = ()
    duration: float = 0.0

    @classmethod
    def failure(cls, message, **kwargs):
        return cls(False, message, **kwargs)
