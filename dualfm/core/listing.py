"""
Directory listing, sorting and mask filtering for panes.
"""
import logging
import os
import re

from .models import FileEntry, SortMode

LOGGER = logging.getLogger(__name__)


def list_directory(path, registry=None, show_hidden=True):
    """Return fresh entries for the children of ``path``.

    Children that vanish or refuse ``stat`` while listing are skipped; failing
    to open ``path`` itself raises ``OSError``.
    """
    entries = []
    with os.scandir(path) as it:
        for item in it:
            if not show_hidden and item.name.startswith('.'):
                continue
            try:
                st = item.stat()
            except OSError as exc:
                LOGGER.warning('Skipping unreadable entry %s: %s', item.path, exc)
                continue
            entries.append(FileEntry.from_path(item.path, registry=registry, st=st))
    return entries


def _name_key(entry):
    return entry.name.casefold()


_PRIMARY_KEYS = {
    'name': _name_key,
    'extension': lambda entry: entry.extension.casefold(),
    'size': lambda entry: entry.size,
    'date': lambda entry: entry.last_modified,
}


def _sort_group(group, mode):
    if mode is SortMode.UNSORTED:
        return list(group)
    field_name = mode.value.rsplit('_', 1)[0]
    if field_name == 'name':
        return sorted(group, key=_name_key, reverse=mode.descending)
    # Stable two-pass sort: ties on the primary key stay in name order.
    by_name = sorted(group, key=_name_key)
    return sorted(by_name, key=_PRIMARY_KEYS[field_name], reverse=mode.descending)


def sort_entries(entries, mode=SortMode.NAME_ASC):
    """Return a new list with directories first, each group ordered by ``mode``."""
    mode = SortMode(mode)
    dirs = [entry for entry in entries if entry.is_directory]
    files = [entry for entry in entries if not entry.is_directory]
    return _sort_group(dirs, mode) + _sort_group(files, mode)


class MaskPattern:
    """One compiled mask term: a glob or a ``/regex/`` (``/regex/i``)."""

    __slots__ = ('source', 'regex')

    def __init__(self, source):
        self.source = source
        self.regex = _compile_pattern(source)

    def matches(self, name):
        return self.regex is not None and self.regex.search(name) is not None


def _compile_pattern(pattern):
    if len(pattern) >= 2 and pattern.startswith('/'):
        flags = 0
        body = pattern[1:]
        if body.endswith('/i') and len(body) >= 2:
            body = body[:-2]
            flags = re.IGNORECASE
        elif body.endswith('/'):
            body = body[:-1]
        else:
            body = None
        if body is not None:
            try:
                return re.compile(body, flags)
            except re.error as exc:
                LOGGER.warning('Invalid mask regex %r: %s', pattern, exc)
                return None
    glob = re.escape(pattern).replace(r'\*', '.*').replace(r'\?', '.')
    return re.compile(f'^{glob}$', re.IGNORECASE | re.DOTALL)


def parse_mask(mask):
    """Split a mask into ``(includes, excludes)`` lists of MaskPattern."""
    includes, excludes = [], []
    for term in str(mask or '').split():
        if term.startswith(':'):
            if len(term) > 1:
                excludes.append(MaskPattern(term[1:]))
        else:
            includes.append(MaskPattern(term))
    return includes, excludes


def matches_pattern(name, pattern):
    """Return True when ``name`` matches a single glob or regex term."""
    return MaskPattern(pattern).matches(name)


def _is_match_all(includes):
    return any(p.source == '*' for p in includes)


def apply_mask(entries, mask):
    """Keep directories, plus files matching an include and no exclude."""
    includes, excludes = parse_mask(mask)
    if not excludes and (not includes or _is_match_all(includes)):
        return list(entries)
    result = []
    for entry in entries:
        if entry.is_directory:
            result.append(entry)
            continue
        if includes and not any(p.matches(entry.name) for p in includes):
            continue
        if any(p.matches(entry.name) for p in excludes):
            continue
        result.append(entry)
    return result
