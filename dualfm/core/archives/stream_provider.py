"""Single compressed files (.gz, .bz2, .xz) shown as a one-member archive.

The member is named after the archive without its compression suffix:
``notes.txt.gz`` holds ``notes.txt``. Tarballs (``.tar.gz`` and friends)
never reach this provider because the registry prefers the longer suffix.
"""
import bz2
import contextlib
import gzip
import logging
import lzma
import os
import shutil
import struct
from datetime import datetime

from ..models import ArchiveFormat, OperationResult
from .base import COPY_CHUNK_SIZE, ArchiveError, ArchiveMember, ArchiveProvider

LOGGER = logging.getLogger(__name__)

_OPENERS = {
    '.gz': gzip.open,
    '.bz2': bz2.open,
    '.xz': lzma.open,
}


def stream_suffix(path):
    lower = str(path).lower()
    for suffix in _OPENERS:
        if lower.endswith(suffix):
            return suffix
    return None


def member_name(archive_path):
    """Name of the single file inside ``archive_path``."""
    name = os.path.basename(archive_path)
    suffix = stream_suffix(name)
    stem = name[:-len(suffix)] if suffix else name
    return stem or 'data'


def _gzip_size(archive_path):
    # ISIZE trailer: uncompressed length modulo 2**32.
    with open(archive_path, 'rb') as handle:
        handle.seek(-4, os.SEEK_END)
        return struct.unpack('<I', handle.read(4))[0]


class _StreamWriter:
    """Writer that accepts exactly one regular file."""

    def __init__(self, archive_path, opener, options):
        self._archive_path = archive_path
        self._opener = opener
        self._options = options
        self._written = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def add(self, path, is_dir):
        if is_dir or self._written:
            raise ValueError('A compressed stream holds exactly one file; use a tar or zip archive instead.')
        with open(path, 'rb') as src, self._opener(self._archive_path, 'wb', **self._options) as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
        self._written = True


class StreamArchiveProvider(ArchiveProvider):
    """gzip / bzip2 / xz single-file streams via the standard library."""

    extensions = tuple(_OPENERS)
    format = ArchiveFormat.GZ
    member_errors = ArchiveProvider.member_errors + (EOFError, lzma.LZMAError)

    def _opener(self, archive_path):
        return _OPENERS[stream_suffix(archive_path)]

    def list_members(self, archive_path):
        if not os.path.isfile(archive_path):
            raise ArchiveError(f'Archive file not found: {archive_path}')
        opener = self._opener(archive_path)
        try:
            with opener(archive_path, 'rb') as handle:
                handle.read(1)
            if opener is gzip.open:
                size = _gzip_size(archive_path)
            else:
                # bzip2 and xz carry no cheap length field; show the stored size.
                size = os.path.getsize(archive_path)
        except (OSError, EOFError, lzma.LZMAError) as exc:
            raise ArchiveError(f'Cannot read {os.path.basename(archive_path)}: {exc}') from exc
        modified = datetime.fromtimestamp(os.path.getmtime(archive_path))
        return [ArchiveMember(path=member_name(archive_path), size=size, modified=modified)]

    def _open_reader(self, archive_path):
        return contextlib.nullcontext(archive_path)

    def _open_member(self, reader, member):
        return self._opener(reader)(reader, 'rb')

    def _open_writer(self, archive_path, compression_level):
        level = max(0, min(9, int(compression_level)))
        suffix = stream_suffix(archive_path)
        if suffix == '.gz':
            options = {'compresslevel': level}
        elif suffix == '.bz2':
            options = {'compresslevel': max(1, level)}
        else:
            options = {'preset': level}
        return _StreamWriter(archive_path, _OPENERS[suffix], options)

    def _add_path(self, writer, path, arcname, is_dir):
        writer.add(path, is_dir)

    def delete_entries(self, archive_path, internal_paths, token=None):
        return OperationResult.failure(
            f'{os.path.basename(archive_path)} holds a single file; delete the archive itself instead.'
        )
