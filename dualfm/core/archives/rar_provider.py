"""RAR archives via ``rarfile`` (read-only; extraction needs an unrar backend)."""
import logging
import os
from datetime import datetime

from ..models import ArchiveFormat
from .base import ArchiveError, ArchiveMember, ArchiveProvider, naive_local, normalize_internal_path

try:
    import rarfile
except ImportError:  # pragma: no cover - depends on installed extras
    rarfile = None

LOGGER = logging.getLogger(__name__)

AVAILABLE = rarfile is not None


def _rar_datetime(info):
    modified = naive_local(getattr(info, 'mtime', None))
    if modified is not None:
        return modified
    try:
        return datetime(*info.date_time)
    except (TypeError, ValueError):
        return None


class RarArchiveProvider(ArchiveProvider):
    """Browse and extract ``.rar`` files; packing is refused."""

    extensions = ('.rar',)
    format = ArchiveFormat.RAR
    read_only = True
    member_errors = ArchiveProvider.member_errors + ((rarfile.Error,) if AVAILABLE else ())

    def list_members(self, archive_path):
        if not os.path.isfile(archive_path):
            raise ArchiveError(f'Archive file not found: {archive_path}')
        try:
            with rarfile.RarFile(archive_path) as rf:
                infos = rf.infolist()
        except self.member_errors as exc:
            raise ArchiveError(f'Cannot read {os.path.basename(archive_path)}: {exc}') from exc

        members = []
        for info in infos:
            path = normalize_internal_path(info.filename)
            if not path:
                continue
            is_dir = info.is_dir()
            members.append(ArchiveMember(
                path=path,
                size=0 if is_dir else int(info.file_size or 0),
                modified=_rar_datetime(info),
                is_dir=is_dir,
                raw=info,
            ))
        return members

    def _open_reader(self, archive_path):
        return rarfile.RarFile(archive_path)

    def _open_member(self, reader, member):
        return reader.open(member.raw)
