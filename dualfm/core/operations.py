"""
Batch file operations engine.

Every verb is a blocking call meant to run on a worker thread. Verbs take a
cancellation token (checked between files, never mid-file) and an optional
``progress`` callable that receives one ``ProgressEvent`` per completed
file. Copy and Move also accept ``on_collision(dest_path)`` returning a
``CollisionDecision``; OVERWRITE_ALL/SKIP_ALL answers are remembered for the
rest of that call only.

The engine keeps no state between calls and never touches pane state: it
works on paths and entries handed in, and returns an ``OperationResult``.
"""
import errno
import logging
import math
import os
import re
import shutil
import tempfile
import time

from . import compare
from .cancellation import is_cancelled
from .models import CollisionAction, CollisionDecision, OperationResult, ProgressEvent

LOGGER = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024

_WINDOWS_INVALID_CHARS = set('<>:"/\\|?*')
_WINDOWS_RESERVED = (
    {'CON', 'PRN', 'AUX', 'NUL'}
    | {f'COM{i}' for i in range(1, 10)}
    | {f'LPT{i}' for i in range(1, 10)}
)


def invalid_name_reason(name):
    """Return why ``name`` cannot be used as a file name here, or None."""
    if not name or not name.strip():
        return 'Name cannot be empty.'
    if name in ('.', '..'):
        return f'"{name}" is not a valid name.'
    if '\0' in name or os.sep in name or (os.altsep and os.altsep in name):
        return f'Invalid characters in name: {name}'
    if os.name == 'nt':
        if any(ch in _WINDOWS_INVALID_CHARS or ord(ch) < 32 for ch in name):
            return f'Invalid characters in name: {name}'
        if name.split('.', 1)[0].upper() in _WINDOWS_RESERVED:
            return f'Reserved name: {name}'
        if name.endswith((' ', '.')):
            return f'Name cannot end with a space or dot: {name}'
    return None


def apply_rename_pattern(name, find, replace=''):
    """Compute a new file name.

    ``find`` may be ``s/regex/replacement/[i]`` (``$1`` or ``\\1`` groups),
    ``tr/abc/xyz/`` (character transliteration) or a plain substring that is
    replaced by ``replace``. Raises ``re.error`` for a bad regex.
    """
    if find.startswith('s/'):
        parts = find.split('/')
        if len(parts) >= 3:
            flags = re.IGNORECASE if len(parts) > 3 and 'i' in parts[3] else 0
            replacement = re.sub(r'\$(\d+)', r'\\g<\1>', parts[2])
            return re.sub(parts[1], replacement, name, flags=flags)
    if find.startswith('tr/'):
        parts = find.split('/')
        if len(parts) >= 3:
            source, target = parts[1], parts[2]
            table = {ord(ch): target[idx] for idx, ch in enumerate(source) if idx < len(target)}
            return name.translate(table)
    if not find:
        return name
    return name.replace(find, replace)


class _BatchCancelled(Exception):
    """A collision callback answered CANCEL."""


class _CollisionState:
    """Per-call collision bookkeeping, including sticky decisions."""

    def __init__(self, on_collision):
        self.on_collision = on_collision
        self.sticky = None

    def resolve(self, dest_path):
        if self.sticky is CollisionAction.OVERWRITE_ALL:
            return CollisionDecision(CollisionAction.OVERWRITE)
        if self.sticky is CollisionAction.SKIP_ALL:
            return CollisionDecision(CollisionAction.SKIP)
        if self.on_collision is None:
            return None
        decision = self.on_collision(dest_path)
        if not isinstance(decision, CollisionDecision):
            decision = CollisionDecision(CollisionAction(decision))
        if decision.action in (CollisionAction.OVERWRITE_ALL, CollisionAction.SKIP_ALL):
            self.sticky = decision.action
        LOGGER.debug('Collision at %s resolved as %s', dest_path, decision.action.value)
        return decision


class _Progress:
    """Cumulative progress counters for one call."""

    def __init__(self, total_files, total_bytes, callback):
        self.total_files = total_files
        self.total_bytes = total_bytes
        self.callback = callback
        self.index = 0
        self.bytes_done = 0

    def advance(self, name, files=1, size=0):
        self.bytes_done += size
        if files <= 0:
            return
        self.index = min(self.total_files, self.index + files)
        if self.callback is not None:
            self.callback(ProgressEvent(name, self.index, self.total_files, self.bytes_done, self.total_bytes))


def _scan(path):
    """Return ``(files, bytes)`` below a path (1 file for non-directories)."""
    if os.path.isdir(path) and not os.path.islink(path):
        files = 0
        total = 0
        for root, dirs, names in os.walk(path):
            linked_dirs = [name for name in dirs if os.path.islink(os.path.join(root, name))]
            for name in names + linked_dirs:
                files += 1
                try:
                    total += os.lstat(os.path.join(root, name)).st_size
                except OSError:
                    pass
        return files, total
    try:
        return 1, os.lstat(path).st_size
    except OSError:
        return 1, 0


def _is_within(path, parent):
    path = os.path.realpath(path)
    parent = os.path.realpath(parent)
    return path == parent or path.startswith(parent.rstrip(os.sep) + os.sep)


def _same_file(a, b):
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


def _remove_path(path):
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


def _copy_file(src, dst):
    """Copy bytes and timestamps through a temporary sibling, then rename."""
    fd, tmp_path = tempfile.mkstemp(prefix='.dualfm-', suffix='.part', dir=os.path.dirname(dst))
    try:
        with os.fdopen(fd, 'wb') as out, open(src, 'rb') as inp:
            shutil.copyfileobj(inp, out, COPY_CHUNK_SIZE)
        shutil.copystat(src, tmp_path)
        os.replace(tmp_path, dst)
    except BaseException:
        try:
            os.remove(tmp_path)
        except OSError:
            pass
        raise


def _copy_link(src, dst):
    """Recreate a symbolic link instead of following it."""
    os.symlink(os.readlink(src), dst, target_is_directory=os.path.isdir(src))
    try:
        shutil.copystat(src, dst, follow_symlinks=False)
    except (OSError, NotImplementedError):
        LOGGER.debug('Could not copy link metadata for %s', src, exc_info=True)


def _summary(verb, processed, requested, skipped, errors, cancelled):
    if cancelled:
        return f'{verb} cancelled by user after {processed} of {requested} item(s).'
    if errors:
        first = errors[0]
        more = f' (+{len(errors) - 1} more)' if len(errors) > 1 else ''
        return f'{verb} finished with errors: {first}{more}'
    text = f'{verb} {processed} of {requested} item(s) done.'
    if skipped:
        text += f' Skipped {skipped}.'
    return text


class FileOperations:
    """Stateless batch file operations over real paths."""

    # ------------------------------------------------------------------
    # Copy / Move
    # ------------------------------------------------------------------

    def copy(self, entries, dest_dir, token=None, on_collision=None, progress=None):
        """Copy files and directory trees into ``dest_dir``."""
        return self._transfer('Copy', entries, dest_dir, token, on_collision, progress, move=False)

    def move(self, entries, dest_dir, token=None, on_collision=None, progress=None):
        """Move entries into ``dest_dir`` (rename, or copy then delete across devices)."""
        return self._transfer('Move', entries, dest_dir, token, on_collision, progress, move=True)

    def _resolve_destination(self, src, dest_dir, collisions):
        """Return ``(dest_path, overwrite)``, or None when the item is skipped."""
        dest = os.path.join(dest_dir, os.path.basename(src.rstrip(os.sep)))
        while os.path.lexists(dest):
            decision = collisions.resolve(dest)
            if decision is None:
                raise FileExistsError(errno.EEXIST, 'Destination already exists', dest)
            action = decision.action
            if action is CollisionAction.CANCEL:
                raise _BatchCancelled()
            if action in (CollisionAction.SKIP, CollisionAction.SKIP_ALL):
                return None
            if action is CollisionAction.RENAME:
                new_name = (decision.new_name or '').strip()
                reason = invalid_name_reason(new_name)
                if reason:
                    raise ValueError(reason)
                dest = os.path.join(dest_dir, new_name)
                continue
            if _same_file(src, dest):
                raise ValueError(f'Cannot overwrite {dest} with itself')
            return dest, True
        return dest, False

    def _transfer(self, verb, entries, dest_dir, token, on_collision, progress, move):
        started = time.monotonic()
        sources = [os.path.abspath(getattr(entry, 'full_path', entry)) for entry in entries]
        dest_dir = os.path.abspath(dest_dir)
        if not os.path.isdir(dest_dir):
            return OperationResult.failure(f'Destination directory does not exist: {dest_dir}')

        stats = [_scan(src) for src in sources]
        tracker = _Progress(sum(s[0] for s in stats), sum(s[1] for s in stats), progress)
        collisions = _CollisionState(on_collision)
        errors = []
        processed = skipped = 0
        cancelled = False
        LOGGER.info('%s %d item(s) to %s', verb, len(sources), dest_dir)

        for src, (item_files, item_bytes) in zip(sources, stats):
            if is_cancelled(token):
                cancelled = True
                break
            name = os.path.basename(src)
            try:
                if not os.path.lexists(src):
                    raise FileNotFoundError(errno.ENOENT, 'Source no longer exists', src)
                if os.path.isdir(src) and not os.path.islink(src) and _is_within(dest_dir, src):
                    raise ValueError(f'Cannot {verb.lower()} {name} into itself')
                resolved = self._resolve_destination(src, dest_dir, collisions)
                if resolved is None:
                    skipped += 1
                    tracker.advance(name, 0, item_bytes)
                    continue
                dest, overwrite = resolved
                if move:
                    done = self._move_item(src, dest, overwrite, item_files, item_bytes, tracker, token, errors)
                else:
                    done = self._copy_item(src, dest, overwrite, tracker, token, errors)
            except _BatchCancelled:
                cancelled = True
                break
            except (OSError, ValueError) as exc:
                LOGGER.warning('%s of %s failed: %s', verb, src, exc)
                errors.append(f'{name}: {exc}')
                continue
            if done:
                processed += 1
            elif is_cancelled(token):
                cancelled = True
                break

        message = _summary(verb, processed, len(sources), skipped, errors, cancelled)
        LOGGER.info(message)
        return OperationResult(
            success=not cancelled and not errors,
            message=message,
            files_processed=processed,
            bytes_processed=tracker.bytes_done,
            files_skipped=skipped,
            errors=tuple(errors),
            duration=time.monotonic() - started,
        )

    def _copy_item(self, src, dest, overwrite, tracker, token, errors):
        if os.path.islink(src):
            if overwrite and os.path.lexists(dest):
                _remove_path(dest)
            _copy_link(src, dest)
            tracker.advance(os.path.basename(src), 1, os.lstat(dest).st_size)
            return True
        if os.path.isdir(src):
            if overwrite and os.path.lexists(dest):
                _remove_path(dest)
            return self._copy_tree(src, dest, tracker, token, errors)
        if overwrite and os.path.isdir(dest) and not os.path.islink(dest):
            shutil.rmtree(dest)
        _copy_file(src, dest)
        tracker.advance(os.path.basename(src), 1, os.path.getsize(dest))
        return True

    def _copy_tree(self, src, dest, tracker, token, errors):
        """Copy a directory recursively; False if anything inside failed or it was cancelled."""
        os.makedirs(dest, exist_ok=True)
        complete = True
        with os.scandir(src) as it:
            children = sorted(it, key=lambda item: item.name)
        for child in children:
            if is_cancelled(token):
                return False
            target = os.path.join(dest, child.name)
            try:
                if child.is_symlink():
                    _copy_link(child.path, target)
                    tracker.advance(child.name, 1, os.lstat(target).st_size)
                elif child.is_dir(follow_symlinks=False):
                    complete = self._copy_tree(child.path, target, tracker, token, errors) and complete
                else:
                    _copy_file(child.path, target)
                    tracker.advance(child.name, 1, os.path.getsize(target))
            except OSError as exc:
                LOGGER.warning('Copy of %s failed: %s', child.path, exc)
                errors.append(f'{child.path}: {exc}')
                complete = False
        if is_cancelled(token):
            return False
        try:
            shutil.copystat(src, dest)
        except OSError:
            LOGGER.debug('Could not copy directory metadata for %s', src, exc_info=True)
        return complete

    def _move_item(self, src, dest, overwrite, item_files, item_bytes, tracker, token, errors):
        if overwrite and os.path.lexists(dest):
            if os.path.isdir(dest) and not os.path.islink(dest):
                shutil.rmtree(dest)
            elif os.path.isdir(src) and not os.path.islink(src):
                os.remove(dest)
        try:
            os.replace(src, dest)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise
            LOGGER.debug('Cross-device move of %s, falling back to copy+delete', src)
        else:
            tracker.advance(os.path.basename(src), item_files, item_bytes)
            return True

        if not self._copy_item(src, dest, False, tracker, token, errors):
            return False
        _remove_path(src)
        return True

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, entries, token=None, progress=None):
        """Delete files and directory trees; already-missing targets count as done."""
        started = time.monotonic()
        paths = [os.path.abspath(getattr(entry, 'full_path', entry)) for entry in entries]
        stats = [_scan(path) if os.path.lexists(path) else (0, 0) for path in paths]
        tracker = _Progress(sum(s[0] for s in stats), sum(s[1] for s in stats), progress)
        errors = []
        processed = 0
        cancelled = False

        for path, (_, item_bytes) in zip(paths, stats):
            if is_cancelled(token):
                cancelled = True
                break
            name = os.path.basename(path)
            if not os.path.lexists(path):
                processed += 1
                continue
            if os.path.isdir(path) and not os.path.islink(path):
                if self._delete_tree(path, tracker, token, errors):
                    processed += 1
                elif is_cancelled(token):
                    cancelled = True
                    break
                continue
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as exc:
                LOGGER.warning('Delete of %s failed: %s', path, exc)
                errors.append(f'{name}: {exc}')
                continue
            tracker.advance(name, 1, item_bytes)
            processed += 1

        message = _summary('Delete', processed, len(paths), 0, errors, cancelled)
        LOGGER.info(message)
        return OperationResult(
            success=not cancelled and not errors,
            message=message,
            files_processed=processed,
            bytes_processed=tracker.bytes_done,
            errors=tuple(errors),
            duration=time.monotonic() - started,
        )

    def _delete_tree(self, path, tracker, token, errors):
        complete = True
        for root, dirs, files in os.walk(path, topdown=False):
            for name in files:
                if is_cancelled(token):
                    return False
                full = os.path.join(root, name)
                try:
                    size = os.lstat(full).st_size
                    os.remove(full)
                except FileNotFoundError:
                    size = 0
                except OSError as exc:
                    LOGGER.warning('Delete of %s failed: %s', full, exc)
                    errors.append(f'{full}: {exc}')
                    complete = False
                    continue
                tracker.advance(name, 1, size)
            for name in dirs:
                full = os.path.join(root, name)
                try:
                    if os.path.islink(full):
                        os.remove(full)
                    else:
                        os.rmdir(full)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    if complete:
                        errors.append(f'{full}: {exc}')
                    complete = False
        try:
            os.rmdir(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            if complete:
                errors.append(f'{path}: {exc}')
            complete = False
        return complete

    # ------------------------------------------------------------------
    # Rename / CreateDirectory
    # ------------------------------------------------------------------

    def rename(self, entries, find, replace='', progress=None):
        """Rename each entry in place using ``apply_rename_pattern``.

        Entries whose name does not change are left alone but still count
        as processed.
        """
        started = time.monotonic()
        entries = list(entries)
        try:
            apply_rename_pattern('probe', find, replace)
        except re.error as exc:
            return OperationResult.failure(f'Invalid rename pattern {find!r}: {exc}')

        errors = []
        processed = 0
        for index, entry in enumerate(entries, 1):
            old_path = os.path.abspath(entry.full_path)
            new_name = apply_rename_pattern(entry.name, find, replace)
            if new_name != entry.name:
                reason = invalid_name_reason(new_name)
                new_path = os.path.join(os.path.dirname(old_path), new_name)
                if reason:
                    errors.append(f'{entry.name}: {reason}')
                    continue
                if os.path.lexists(new_path) and not _same_file(old_path, new_path):
                    errors.append(f'{entry.name}: {new_name} already exists')
                    continue
                try:
                    os.rename(old_path, new_path)
                except OSError as exc:
                    LOGGER.warning('Rename of %s failed: %s', old_path, exc)
                    errors.append(f'{entry.name}: {exc}')
                    continue
                LOGGER.debug('Renamed %s -> %s', entry.name, new_name)
            processed += 1
            if progress is not None:
                progress(ProgressEvent(entry.name, index, len(entries)))

        if errors:
            message = _summary('Rename', processed, len(entries), 0, errors, False)
        else:
            message = f'Renamed {processed} item(s).'
        return OperationResult(
            success=not errors,
            message=message,
            files_processed=processed,
            errors=tuple(errors),
            duration=time.monotonic() - started,
        )

    def create_directory(self, parent_dir, name):
        """Create ``parent_dir/name``; never raises for expected failures."""
        name = str(name or '').strip()
        if not name:
            return OperationResult.failure('Folder name cannot be empty.')
        reason = invalid_name_reason(name)
        if reason:
            return OperationResult.failure(reason)
        if not os.path.isdir(parent_dir):
            return OperationResult.failure(f'Parent directory does not exist: {parent_dir}')
        path = os.path.join(parent_dir, name)
        if os.path.lexists(path):
            return OperationResult.failure('A file or folder with that name already exists.')
        try:
            os.mkdir(path)
        except OSError as exc:
            LOGGER.warning('Create directory %s failed: %s', path, exc)
            return OperationResult.failure(f'Failed to create directory: {exc}')
        LOGGER.info('Created directory %s', path)
        return OperationResult(True, f'Created directory: {name}', files_processed=1)

    # ------------------------------------------------------------------
    # Split / Join
    # ------------------------------------------------------------------

    @staticmethod
    def part_names(file_name, part_count):
        """Part file names; zero padding keeps lexicographic order == numeric order."""
        width = max(3, len(str(part_count)))
        return [f'{file_name}.{n:0{width}d}' for n in range(1, part_count + 1)]

    def split(self, source_file, part_size, output_dir, token=None, progress=None):
        """Cut a file into ``ceil(size / part_size)`` numbered parts."""
        started = time.monotonic()
        if not os.path.isfile(source_file):
            return OperationResult.failure(f'Source file does not exist: {source_file}')
        try:
            part_size = int(part_size)
        except (TypeError, ValueError):
            return OperationResult.failure(f'Invalid part size: {part_size}')
        if part_size <= 0:
            return OperationResult.failure('Part size must be greater than zero.')
        size = os.path.getsize(source_file)
        if size == 0:
            return OperationResult.failure('Cannot split an empty file.')
        try:
            os.makedirs(output_dir, exist_ok=True)
        except OSError as exc:
            return OperationResult.failure(f'Cannot create {output_dir}: {exc}')

        count = math.ceil(size / part_size)
        names = self.part_names(os.path.basename(source_file), count)
        written = 0
        bytes_done = 0
        cancelled = False
        try:
            with open(source_file, 'rb') as src:
                for index, part_name in enumerate(names, 1):
                    if is_cancelled(token):
                        cancelled = True
                        break
                    part_path = os.path.join(output_dir, part_name)
                    part_bytes = self._write_part(src, part_path, part_size)
                    written += 1
                    bytes_done += part_bytes
                    if progress is not None:
                        progress(ProgressEvent(part_name, index, count, bytes_done, size))
        except OSError as exc:
            LOGGER.error('Split of %s failed', source_file, exc_info=True)
            return OperationResult(
                False, f'Split failed: {exc}', files_processed=written, bytes_processed=bytes_done,
                errors=(str(exc),), duration=time.monotonic() - started,
            )

        if cancelled:
            message = f'Split cancelled by user after {written} of {count} part(s).'
        else:
            message = f'Split {os.path.basename(source_file)} into {count} part(s).'
        LOGGER.info(message)
        return OperationResult(
            success=not cancelled,
            message=message,
            files_processed=written,
            bytes_processed=bytes_done,
            duration=time.monotonic() - started,
        )

    @staticmethod
    def _write_part(src, part_path, part_size):
        fd, tmp_path = tempfile.mkstemp(prefix='.dualfm-', suffix='.part', dir=os.path.dirname(part_path))
        remaining = part_size
        try:
            with os.fdopen(fd, 'wb') as out:
                while remaining > 0:
                    chunk = src.read(min(COPY_CHUNK_SIZE, remaining))
                    if not chunk:
                        break
                    out.write(chunk)
                    remaining -= len(chunk)
            os.replace(tmp_path, part_path)
        except BaseException:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
        return part_size - remaining

    def join(self, part_paths, dest_file, token=None, progress=None):
        """Concatenate parts (already ordered) into ``dest_file``.

        Output goes to a temporary sibling first, so a cancelled or failed
        join never leaves a truncated ``dest_file``.
        """
        started = time.monotonic()
        parts = [os.path.abspath(path) for path in part_paths]
        if not parts:
            return OperationResult.failure('No part files specified.')
        for part in parts:
            if not os.path.isfile(part):
                return OperationResult.failure(f'Part file does not exist: {part}')
        dest_file = os.path.abspath(dest_file)
        if dest_file in parts:
            return OperationResult.failure('Destination cannot be one of the parts.')
        dest_dir = os.path.dirname(dest_file)
        if not os.path.isdir(dest_dir):
            return OperationResult.failure(f'Destination directory does not exist: {dest_dir}')

        total = sum(os.path.getsize(part) for part in parts)
        joined = 0
        bytes_done = 0
        cancelled = False
        fd, tmp_path = tempfile.mkstemp(prefix='.dualfm-', suffix='.part', dir=dest_dir)
        try:
            with os.fdopen(fd, 'wb') as out:
                for index, part in enumerate(parts, 1):
                    if is_cancelled(token):
                        cancelled = True
                        break
                    with open(part, 'rb') as src:
                        shutil.copyfileobj(src, out, COPY_CHUNK_SIZE)
                    joined += 1
                    bytes_done += os.path.getsize(part)
                    if progress is not None:
                        progress(ProgressEvent(os.path.basename(part), index, len(parts), bytes_done, total))
            if not cancelled:
                os.replace(tmp_path, dest_file)
        except OSError as exc:
            LOGGER.error('Join into %s failed', dest_file, exc_info=True)
            cancelled = None
            failure = f'Join failed: {exc}'
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        if cancelled is None:
            return OperationResult(
                False, failure, files_processed=joined, bytes_processed=bytes_done,
                errors=(failure,), duration=time.monotonic() - started,
            )
        if cancelled:
            message = f'Join cancelled by user after {joined} of {len(parts)} part(s).'
        else:
            message = f'Joined {joined} part(s) into {os.path.basename(dest_file)}.'
        LOGGER.info(message)
        return OperationResult(
            success=not cancelled,
            message=message,
            files_processed=joined,
            bytes_processed=bytes_done,
            duration=time.monotonic() - started,
        )

    # ------------------------------------------------------------------
    # Compare / sizing
    # ------------------------------------------------------------------

    def compare_files(self, left, right, criteria, tolerance=None):
        """Mark entries with a counterpart in the other pane."""
        return compare.compare_files(left, right, criteria, tolerance=tolerance)

    def calculate_directory_size(self, path, token=None):
        """Return ``(bytes, files, dirs)`` below ``path``; stops early when cancelled."""
        total = files = dirs = 0
        for root, dirnames, filenames in os.walk(path):
            if is_cancelled(token):
                break
            dirs += len(dirnames)
            for name in filenames:
                files += 1
                try:
                    total += os.lstat(os.path.join(root, name)).st_size
                except OSError:
                    pass
        return total, files, dirs
