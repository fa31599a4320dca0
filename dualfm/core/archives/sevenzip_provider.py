"""7-Zip archives via ``py7zr``."""
import logging
import os
import tempfile

from ..models import ArchiveFormat
from .base import ArchiveError, ArchiveMember, ArchiveProvider, naive_local, normalize_internal_path

try:
    import py7zr
    from py7zr.exceptions import ArchiveError as SevenZipError
    from py7zr.exceptions import PasswordRequired
except ImportError:  # pragma: no cover - depends on installed extras
    py7zr = None
    SevenZipError = PasswordRequired = None

LOGGER = logging.getLogger(__name__)

AVAILABLE = py7zr is not None


class SevenZipArchiveProvider(ArchiveProvider):
    """Read/write provider for ``.7z`` files."""

    extensions = ('.7z',)
    format = ArchiveFormat.SEVEN_ZIP
    member_errors = ArchiveProvider.member_errors + (
        (SevenZipError, PasswordRequired) if AVAILABLE else ()
    )

    def list_members(self, archive_path):
        if not os.path.isfile(archive_path):
            raise ArchiveError(f'Archive file not found: {archive_path}')
        try:
            with py7zr.SevenZipFile(archive_path, mode='r') as archive:
                infos = archive.list()
        except self.member_errors as exc:
            raise ArchiveError(f'Cannot read {os.path.basename(archive_path)}: {exc}') from exc

        members = []
        for info in infos:
            path = normalize_internal_path(info.filename)
            if not path:
                continue
            members.append(ArchiveMember(
                path=path,
                size=0 if info.is_directory else int(info.uncompressed or 0),
                modified=naive_local(getattr(info, 'creationtime', None)),
                is_dir=bool(info.is_directory),
                raw=info,
            ))
        return members

    def _open_reader(self, archive_path):
        return py7zr.SevenZipFile(archive_path, mode='r')

    def _extract_member(self, reader, member, target):
        # py7zr extracts by name into a directory; stage next to the target
        # and rename so a half-written file never appears under its real name.
        name = member.raw.filename
        with tempfile.TemporaryDirectory(prefix='.dualfm-', dir=os.path.dirname(target)) as staging:
            try:
                reader.extract(path=staging, targets=[name])
            finally:
                reader.reset()
            staged = os.path.join(staging, *normalize_internal_path(name).split('/'))
            if not os.path.isfile(staged):
                raise ValueError(f'{member.path} was not extracted')
            os.replace(staged, target)

    def _open_writer(self, archive_path, compression_level):
        level = max(0, min(9, int(compression_level)))
        if level == 0:
            filters = [{'id': py7zr.FILTER_COPY}]
        else:
            filters = [{'id': py7zr.FILTER_LZMA2, 'preset': level}]
        return py7zr.SevenZipFile(archive_path, mode='w', filters=filters)

    def _add_path(self, writer, path, arcname, is_dir):
        writer.write(path, arcname)
