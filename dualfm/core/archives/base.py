"""
Shared archive provider machinery.

A provider knows one container format. It lists raw members and knows how
to stream a single member out and how to add a single path in; the
batch loops (progress, cancellation, path safety, cleanup of partial
archives) live here so every format behaves the same way.
"""
import logging
import os
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from ..cancellation import is_cancelled
from ..models import OperationResult, ProgressEvent

LOGGER = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


class ArchiveError(OSError):
    """Archive missing, corrupt or unreadable at open time."""


class UnsupportedArchiveError(ArchiveError):
    """No provider is registered for the archive's extension."""


def normalize_internal_path(path):
    """Return ``path`` as a ``/``-separated path without leading/trailing slashes."""
    text = str(path or '').replace('\\', '/')
    while text.startswith('./'):
        text = text[2:]
    return text.strip('/')


@dataclass(frozen=True)
class ArchiveMember:
    """One raw entry as stored in an archive."""

    path: str
    size: int = 0
    modified: Optional[datetime] = None
    is_dir: bool = False
    raw: Any = field(default=None, compare=False, repr=False)

    @property
    def name(self):
        return self.path.rsplit('/', 1)[-1]


def naive_local(value):
    """Convert an aware datetime to naive local time; pass naive values through."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value if isinstance(value, datetime) else None


def safe_target(dest_dir, relative_path):
    """Join an archive path onto ``dest_dir``; None if it would escape it."""
    root = os.path.realpath(dest_dir)
    parts = [part for part in relative_path.split('/') if part not in ('', '.')]
    if not parts:
        return None
    target = os.path.realpath(os.path.join(root, *parts))
    if os.path.commonpath([root, target]) != root or target == root:
        return None
    return target


def _restore_mtime(path, modified):
    if modified is None:
        return
    try:
        ts = modified.timestamp()
        os.utime(path, (ts, ts))
    except (OSError, OverflowError, ValueError):
        LOGGER.debug('Could not restore timestamp on %s', path, exc_info=True)


def select_members(members, internal_paths):
    """Resolve requested internal paths into ``(member, relative_target)`` pairs.

    A requested file matches its exact path. A requested folder brings its
    whole subtree along (folder names compare case-insensitively), re-rooted
    at the folder's own name; ``""`` selects the entire archive unchanged.
    """
    selected = []
    seen = set()
    for requested in internal_paths:
        wanted = normalize_internal_path(requested)
        wanted_key = wanted.casefold()
        parent_len = len(wanted.rsplit('/', 1)[0]) + 1 if '/' in wanted else 0
        for member in members:
            key = member.path.casefold()
            if wanted and member.path != wanted and not key.startswith(wanted_key + '/'):
                continue
            if member.path in seen:
                continue
            seen.add(member.path)
            selected.append((member, member.path[parent_len:] if wanted else member.path))
    return selected


def collect_sources(paths):
    """Expand source paths into ``(path, arcname, is_dir)`` tuples.

    Arc names are relative to each source's parent directory, so a
    directory keeps its own name as the top-level folder.
    """
    items = []
    for source in paths:
        source = os.path.abspath(source)
        base = os.path.dirname(source.rstrip(os.sep)) or source
        if os.path.isdir(source):
            items.append((source, os.path.relpath(source, base).replace(os.sep, '/'), True))
            for root, dirs, files in os.walk(source):
                dirs.sort()
                for name in dirs:
                    path = os.path.join(root, name)
                    items.append((path, os.path.relpath(path, base).replace(os.sep, '/'), True))
                for name in sorted(files):
                    path = os.path.join(root, name)
                    items.append((path, os.path.relpath(path, base).replace(os.sep, '/'), False))
        else:
            items.append((source, os.path.basename(source), False))
    return items


class ArchiveProvider:
    """Base class for one archive container format.

    Subclasses set ``extensions``/``format`` and implement ``list_members``,
    ``_open_reader`` and ``_open_member`` (or override ``_extract_member``);
    writable formats implement ``_open_writer`` and ``_add_path``.
    """

    extensions = ()
    format = None
    read_only = False
    member_errors = (OSError, ValueError, RuntimeError)

    def list_members(self, archive_path):
        raise NotImplementedError

    def _open_reader(self, archive_path):
        raise NotImplementedError

    def _open_member(self, reader, member):
        raise NotImplementedError

    def _open_writer(self, archive_path, compression_level):
        raise NotImplementedError

    def _add_path(self, writer, path, arcname, is_dir):
        raise NotImplementedError

    def _extract_member(self, reader, member, target):
        with self._open_member(reader, member) as src, open(target, 'wb') as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)

    def extract(self, archive_path, dest_dir, token=None, progress=None):
        """Expand every member under ``dest_dir`` preserving structure."""
        return self.extract_entries(archive_path, [''], dest_dir, token=token, progress=progress)

    def extract_entries(self, archive_path, internal_paths, dest_dir, token=None, progress=None):
        """Extract selected files/folders, re-rooted at their parent."""
        started = time.monotonic()
        members = self.list_members(archive_path)
        selected = select_members(members, internal_paths)
        files = [(m, rel) for m, rel in selected if not m.is_dir]
        total_bytes = sum(m.size for m, _ in files)
        try:
            os.makedirs(dest_dir, exist_ok=True)
        except OSError as exc:
            return OperationResult.failure(f'Cannot create {dest_dir}: {exc}')

        errors = []
        processed = 0
        done_bytes = 0
        cancelled = False
        with self._open_reader(archive_path) as reader:
            for member, rel in selected:
                if not member.is_dir:
                    continue
                target = safe_target(dest_dir, rel)
                if target is None:
                    continue
                try:
                    os.makedirs(target, exist_ok=True)
                except OSError as exc:
                    errors.append(f'{member.path}: {exc}')
            for member, rel in files:
                if is_cancelled(token):
                    cancelled = True
                    break
                target = safe_target(dest_dir, rel)
                if target is None:
                    LOGGER.warning('Refusing unsafe archive member %s', member.path)
                    errors.append(f'{member.path}: unsafe path')
                    continue
                try:
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    self._extract_member(reader, member, target)
                except self.member_errors as exc:
                    LOGGER.warning('Failed to extract %s: %s', member.path, exc)
                    errors.append(f'{member.path}: {exc}')
                    continue
                _restore_mtime(target, member.modified)
                processed += 1
                done_bytes += member.size
                if progress is not None:
                    progress(ProgressEvent(member.path, processed, len(files), done_bytes, total_bytes))

        elapsed = time.monotonic() - started
        if cancelled:
            message = f'Extraction cancelled after {processed} of {len(files)} files.'
        elif errors:
            message = f'Extracted {processed} of {len(files)} files with {len(errors)} error(s).'
        else:
            message = f'Extracted {processed} files.'
        LOGGER.info('%s (%s)', message, archive_path)
        return OperationResult(
            success=not cancelled and not errors,
            message=message,
            files_processed=processed,
            bytes_processed=done_bytes,
            files_skipped=max(0, len(files) - processed - len(errors)),
            errors=tuple(errors),
            duration=elapsed,
        )

    def compress(self, sources, archive_path, compression_level=6, token=None, progress=None):
        """Create ``archive_path`` from source paths (directories recursively).

        Any failure or cancellation removes the partial archive.
        """
        started = time.monotonic()
        if self.read_only:
            return OperationResult.failure(f'{self.format.name} archives are read-only.')
        archive_abs = os.path.abspath(archive_path)
        items = [item for item in collect_sources(sources) if item[0] != archive_abs]
        file_items = [item for item in items if not item[2]]
        sizes = {}
        for path, _, _ in file_items:
            try:
                sizes[path] = os.path.getsize(path)
            except OSError:
                sizes[path] = 0
        total_bytes = sum(sizes.values())

        processed = 0
        done_bytes = 0
        failure = None
        try:
            with self._open_writer(archive_path, compression_level) as writer:
                for path, arcname, is_dir in items:
                    if is_cancelled(token):
                        failure = f'Compression cancelled after {processed} of {len(file_items)} files.'
                        break
                    self._add_path(writer, path, arcname, is_dir)
                    if is_dir:
                        continue
                    processed += 1
                    done_bytes += sizes[path]
                    if progress is not None:
                        progress(ProgressEvent(arcname, processed, len(file_items), done_bytes, total_bytes))
        except self.member_errors as exc:
            LOGGER.error('Compression of %s failed', archive_path, exc_info=True)
            failure = f'Cannot write {os.path.basename(archive_path)}: {exc}'

        if failure:
            try:
                os.remove(archive_path)
            except FileNotFoundError:
                pass
            except OSError:
                LOGGER.warning('Could not remove partial archive %s', archive_path, exc_info=True)
            return OperationResult(
                False, failure, files_processed=processed, bytes_processed=done_bytes,
                duration=time.monotonic() - started,
            )
        message = f'Packed {processed} files into {os.path.basename(archive_path)}.'
        LOGGER.info(message)
        return OperationResult(
            True, message, files_processed=processed, bytes_processed=done_bytes,
            duration=time.monotonic() - started,
        )

    def delete_entries(self, archive_path, internal_paths, token=None):
        """Remove members (folders recursively) by rewriting the archive."""
        return OperationResult.failure(
            f'Deleting from {self.format.name} archives is not supported.'
        )

    def _delete_by_rewrite(self, archive_path, internal_paths, token, rewrite):
        """Shared delete path: copy the surviving members into a fresh archive."""
        if is_cancelled(token):
            return OperationResult.failure('Delete cancelled.')
        started = time.monotonic()
        members = self.list_members(archive_path)
        doomed = {member.path for member, _ in select_members(members, internal_paths)}
        if not doomed:
            return OperationResult.failure('Nothing matched in the archive.')
        doomed_files = sum(1 for member in members if member.path in doomed and not member.is_dir)
        fd, tmp_path = tempfile.mkstemp(
            prefix='.dualfm-', suffix='.tmp', dir=os.path.dirname(os.path.abspath(archive_path))
        )
        os.close(fd)
        try:
            rewrite(archive_path, tmp_path, doomed)
            os.replace(tmp_path, archive_path)
        except self.member_errors as exc:
            LOGGER.error('Rewriting %s failed', archive_path, exc_info=True)
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            return OperationResult.failure(f'Cannot update {os.path.basename(archive_path)}: {exc}')
        return OperationResult(
            True,
            f'Deleted {doomed_files} files from {os.path.basename(archive_path)}.',
            files_processed=doomed_files,
            duration=time.monotonic() - started,
        )
