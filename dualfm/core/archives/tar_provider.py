"""Tar archives (plain, gzip, bzip2, xz) via the standard ``tarfile`` module."""
import logging
import os
import tarfile
from datetime import datetime

from ..models import ArchiveFormat
from .base import ArchiveError, ArchiveMember, ArchiveProvider, normalize_internal_path

LOGGER = logging.getLogger(__name__)

_COMPRESSION_BY_SUFFIX = (
    ('.tar.gz', 'gz'),
    ('.tgz', 'gz'),
    ('.tar.bz2', 'bz2'),
    ('.tbz2', 'bz2'),
    ('.tar.xz', 'xz'),
    ('.txz', 'xz'),
    ('.tar', ''),
)


def compression_for(path):
    """Return the tarfile compression suffix ('' for plain tar)."""
    lower = str(path).lower()
    for suffix, compression in _COMPRESSION_BY_SUFFIX:
        if lower.endswith(suffix):
            return compression
    return ''


class TarArchiveProvider(ArchiveProvider):
    """Read/write provider for tarballs; compression follows the file name."""

    extensions = tuple(suffix for suffix, _ in _COMPRESSION_BY_SUFFIX)
    format = ArchiveFormat.TAR
    member_errors = ArchiveProvider.member_errors + (tarfile.TarError,)

    def list_members(self, archive_path):
        if not os.path.isfile(archive_path):
            raise ArchiveError(f'Archive file not found: {archive_path}')
        try:
            with tarfile.open(archive_path, 'r:*') as tf:
                infos = tf.getmembers()
        except (tarfile.TarError, OSError, EOFError) as exc:
            raise ArchiveError(f'Cannot read {os.path.basename(archive_path)}: {exc}') from exc

        members = []
        for info in infos:
            path = normalize_internal_path(info.name)
            if not path or not (info.isfile() or info.isdir()):
                if path:
                    LOGGER.debug('Ignoring special tar member %s', info.name)
                continue
            members.append(ArchiveMember(
                path=path,
                size=info.size if info.isfile() else 0,
                modified=datetime.fromtimestamp(info.mtime),
                is_dir=info.isdir(),
                raw=info,
            ))
        return members

    def _open_reader(self, archive_path):
        return tarfile.open(archive_path, 'r:*')

    def _open_member(self, reader, member):
        fileobj = reader.extractfile(member.raw)
        if fileobj is None:
            raise ValueError(f'{member.path} has no data')
        return fileobj

    def _open_writer(self, archive_path, compression_level):
        compression = compression_for(archive_path)
        level = max(0, min(9, int(compression_level)))
        if compression == 'gz':
            return tarfile.open(archive_path, 'w:gz', compresslevel=level)
        if compression == 'bz2':
            return tarfile.open(archive_path, 'w:bz2', compresslevel=max(1, level))
        if compression == 'xz':
            return tarfile.open(archive_path, 'w:xz', preset=level)
        return tarfile.open(archive_path, 'w')

    def _add_path(self, writer, path, arcname, is_dir):
        writer.add(path, arcname=arcname, recursive=False)

    def delete_entries(self, archive_path, internal_paths, token=None):
        return self._delete_by_rewrite(archive_path, internal_paths, token, _rewrite_tar)


def _rewrite_tar(src_path, dst_path, doomed):
    compression = compression_for(src_path)
    mode = f'w:{compression}' if compression else 'w'
    with tarfile.open(src_path, 'r:*') as tin, tarfile.open(dst_path, mode) as tout:
        for info in tin.getmembers():
            if normalize_internal_path(info.name) in doomed:
                continue
            if info.isfile():
                tout.addfile(info, tin.extractfile(info))
            else:
                tout.addfile(info)
