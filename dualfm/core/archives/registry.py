"""
Archive registry: extension lookup plus the virtual-folder view of archives.
"""
import logging
import os
from datetime import datetime

from ..models import ArchiveFormat, FileEntry, OperationResult, SortMode, split_name
from ..listing import sort_entries
from .base import ArchiveError, UnsupportedArchiveError, normalize_internal_path

LOGGER = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0)


def normalize_extension(ext):
    """Lower-case an extension and make sure it has a leading dot."""
    ext = str(ext).strip().lower()
    return ext if ext.startswith('.') else f'.{ext}'


def group_members(members, internal_path=''):
    """Return entries for the direct children of ``internal_path``.

    Deeper members collapse into one virtual folder per distinct first
    segment (compared case-insensitively); explicit directory markers and
    folders implied by file paths merge into the same entry. Files are
    kept apart by their exact name.
    """
    prefix = normalize_internal_path(internal_path)
    prefix_parts = prefix.split('/') if prefix else []
    prefix_keys = [part.casefold() for part in prefix_parts]
    depth = len(prefix_parts)

    folders = {}
    files = {}
    order = []
    for member in members:
        parts = member.path.split('/')
        if [part.casefold() for part in parts[:depth]] != prefix_keys:
            continue
        remaining = parts[depth:]
        if not remaining:
            continue
        first = remaining[0]
        key = first.casefold()
        if len(remaining) > 1 or member.is_dir:
            folder = folders.get(key)
            if folder is None:
                folder = FileEntry(
                    full_path='/'.join(prefix_parts + [first]),
                    name=first,
                    last_modified=_EPOCH,
                    is_directory=True,
                    is_virtual_folder=True,
                )
                folders[key] = folder
                order.append(folder)
            if member.is_dir and len(remaining) == 1 and member.modified is not None:
                folder.last_modified = member.modified
            continue
        if first in files:
            continue
        _, ext = split_name(first)
        entry = FileEntry(
            full_path=member.path,
            name=first,
            extension=ext,
            size=member.size,
            last_modified=member.modified or _EPOCH,
        )
        files[first] = entry
        order.append(entry)
    return order


class ArchiveRegistry:
    """Maps archive extensions to providers and dispatches archive work."""

    def __init__(self, enabled_extensions=None):
        self._providers = {}
        self._enabled = (
            None if enabled_extensions is None
            else {normalize_extension(ext) for ext in enabled_extensions}
        )

    def register_provider(self, provider):
        for ext in provider.extensions:
            key = normalize_extension(ext)
            self._providers[key] = provider
            LOGGER.debug('Registered %s for %s', type(provider).__name__, key)

    def _usable(self, ext):
        return ext in self._providers and (self._enabled is None or ext in self._enabled)

    def supported_extensions(self):
        return sorted(ext for ext in self._providers if self._usable(ext))

    def supported_formats(self):
        """Formats that can be created (registered and not read-only)."""
        formats = []
        for fmt in ArchiveFormat:
            provider = self._providers.get(fmt.value)
            if provider is not None and self._usable(fmt.value) and not provider.read_only:
                formats.append(fmt)
        return formats

    def provider_for(self, path):
        """Return the provider for ``path`` (longest matching suffix) or None."""
        name = os.path.basename(str(path).rstrip('/\\')).lower()
        for ext in sorted(self._providers, key=len, reverse=True):
            if len(name) > len(ext) and name.endswith(ext):
                return self._providers[ext] if self._usable(ext) else None
        return None

    def is_archive(self, path):
        return self.provider_for(path) is not None

    def _require_provider(self, archive_path):
        provider = self.provider_for(archive_path)
        if provider is None:
            raise UnsupportedArchiveError(f'Archive format not supported: {os.path.basename(archive_path)}')
        return provider

    def list_contents(self, archive_path, internal_path='', sort_mode=SortMode.NAME_ASC):
        """List direct children of ``internal_path``; raises ArchiveError."""
        provider = self._require_provider(archive_path)
        members = provider.list_members(archive_path)
        entries = group_members(members, internal_path)
        LOGGER.debug('Listed %s:%s -> %d entries', archive_path, internal_path or '/', len(entries))
        return sort_entries(entries, sort_mode)

    def extract(self, archive_path, dest_dir, token=None, progress=None):
        return self.extract_entries(archive_path, [''], dest_dir, token=token, progress=progress)

    def extract_entries(self, archive_path, internal_paths, dest_dir, token=None, progress=None):
        try:
            provider = self._require_provider(archive_path)
            return provider.extract_entries(archive_path, list(internal_paths), dest_dir, token=token, progress=progress)
        except ArchiveError as exc:
            LOGGER.error('Extract from %s failed: %s', archive_path, exc)
            return OperationResult.failure(str(exc))

    def delete_entries(self, archive_path, internal_paths, token=None):
        try:
            provider = self._require_provider(archive_path)
            return provider.delete_entries(archive_path, list(internal_paths), token=token)
        except ArchiveError as exc:
            LOGGER.error('Delete inside %s failed: %s', archive_path, exc)
            return OperationResult.failure(str(exc))

    def compress(self, sources, archive_path, fmt=None, compression_level=6, progress=None, token=None):
        """Pack entries or paths into a new archive.

        When ``fmt`` is given and ``archive_path`` lacks its extension, the
        extension is appended; the final path is named in the result message.
        """
        paths = [getattr(source, 'full_path', source) for source in sources]
        if not paths:
            return OperationResult.failure('Nothing to pack.')
        if fmt is not None:
            fmt = ArchiveFormat(fmt)
            if ArchiveFormat.from_path(archive_path) is not fmt:
                archive_path = f'{archive_path}{fmt.value}'
        provider = self.provider_for(archive_path)
        if provider is None:
            return OperationResult.failure(f'Archive format not supported: {os.path.basename(archive_path)}')
        LOGGER.info('Packing %d item(s) into %s', len(paths), archive_path)
        return provider.compress(paths, archive_path, compression_level=compression_level, token=token, progress=progress)


def default_registry(extensions=None):
    """Registry with every provider whose backing library is importable."""
    from . import rar_provider, sevenzip_provider
    from .stream_provider import StreamArchiveProvider
    from .tar_provider import TarArchiveProvider
    from .zip_provider import ZipArchiveProvider

    registry = ArchiveRegistry(enabled_extensions=extensions)
    registry.register_provider(ZipArchiveProvider())
    registry.register_provider(TarArchiveProvider())
    registry.register_provider(StreamArchiveProvider())
    if sevenzip_provider.AVAILABLE:
        registry.register_provider(sevenzip_provider.SevenZipArchiveProvider())
    else:
        LOGGER.info('py7zr not installed; .7z archives are listed as plain files')
    if rar_provider.AVAILABLE:
        registry.register_provider(rar_provider.RarArchiveProvider())
    else:
        LOGGER.info('rarfile not installed; .rar archives are listed as plain files')
    return registry
