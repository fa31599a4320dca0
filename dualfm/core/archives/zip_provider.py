"""ZIP archives via the standard ``zipfile`` module."""
import logging
import os
import shutil
import zipfile
from datetime import datetime

from ..models import ArchiveFormat
from .base import COPY_CHUNK_SIZE, ArchiveError, ArchiveMember, ArchiveProvider, normalize_internal_path

LOGGER = logging.getLogger(__name__)


def _zip_datetime(date_time):
    try:
        return datetime(*date_time)
    except (TypeError, ValueError):
        return None


class ZipArchiveProvider(ArchiveProvider):
    """Read/write provider for ``.zip`` files."""

    extensions = ('.zip',)
    format = ArchiveFormat.ZIP
    member_errors = ArchiveProvider.member_errors + (zipfile.BadZipFile, zipfile.LargeZipFile)

    def list_members(self, archive_path):
        if not os.path.isfile(archive_path):
            raise ArchiveError(f'Archive file not found: {archive_path}')
        try:
            with zipfile.ZipFile(archive_path) as zf:
                infos = zf.infolist()
        except (zipfile.BadZipFile, OSError) as exc:
            raise ArchiveError(f'Cannot read {os.path.basename(archive_path)}: {exc}') from exc

        members = []
        for info in infos:
            path = normalize_internal_path(info.filename)
            if not path:
                continue
            is_dir = info.is_dir()
            members.append(ArchiveMember(
                path=path,
                size=0 if is_dir else info.file_size,
                modified=_zip_datetime(info.date_time),
                is_dir=is_dir,
                raw=info,
            ))
        return members

    def _open_reader(self, archive_path):
        return zipfile.ZipFile(archive_path)

    def _open_member(self, reader, member):
        return reader.open(member.raw)

    def _open_writer(self, archive_path, compression_level):
        level = max(0, min(9, int(compression_level)))
        if level == 0:
            return zipfile.ZipFile(archive_path, 'w', compression=zipfile.ZIP_STORED)
        return zipfile.ZipFile(archive_path, 'w', compression=zipfile.ZIP_DEFLATED, compresslevel=level)

    def _add_path(self, writer, path, arcname, is_dir):
        writer.write(path, arcname)

    def delete_entries(self, archive_path, internal_paths, token=None):
        return self._delete_by_rewrite(archive_path, internal_paths, token, _rewrite_zip)


def _rewrite_zip(src_path, dst_path, doomed):
    with zipfile.ZipFile(src_path) as zin, zipfile.ZipFile(dst_path, 'w') as zout:
        for info in zin.infolist():
            if normalize_internal_path(info.filename) in doomed:
                continue
            if info.is_dir():
                zout.writestr(info, b'')
                continue
            large = info.file_size >= zipfile.ZIP64_LIMIT
            with zin.open(info) as src, zout.open(info, 'w', force_zip64=large) as dst:
                shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
    LOGGER.debug('Rewrote %s without %d entries', src_path, len(doomed))
