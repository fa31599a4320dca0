"""
Pane comparison: mark files that have a counterpart in the other pane.
"""
import bisect
import logging
from datetime import timedelta

from .models import ComparisonCriteria, OperationResult

LOGGER = logging.getLogger(__name__)


def _entries(side):
    return list(getattr(side, 'entries', side))


def _as_tolerance(tolerance):
    if tolerance is None:
        return None
    if isinstance(tolerance, timedelta):
        return tolerance
    return timedelta(seconds=float(tolerance))


def _mark_matching(files, other_keys, key):
    count = 0
    for entry in files:
        if key(entry) in other_keys:
            entry.is_marked = True
            count += 1
    return count


def _mark_within(files, other_times, tolerance):
    count = 0
    for entry in files:
        idx = bisect.bisect_left(other_times, entry.last_modified - tolerance)
        if idx < len(other_times) and other_times[idx] <= entry.last_modified + tolerance:
            entry.is_marked = True
            count += 1
    return count


def compare_files(left, right, criteria, tolerance=None):
    """Mark non-directory entries on both sides that match under ``criteria``.

    ``left``/``right`` are panes or entry sequences. Existing marks are kept.
    ``TIMESTAMP`` needs a tolerance (``timedelta`` or seconds).
    """
    criteria = ComparisonCriteria(criteria)
    try:
        tolerance = _as_tolerance(tolerance)
    except (TypeError, ValueError):
        return OperationResult.failure(f'Invalid timestamp tolerance: {tolerance!r}')
    left_files = [entry for entry in _entries(left) if not entry.is_directory]
    right_files = [entry for entry in _entries(right) if not entry.is_directory]

    if criteria is ComparisonCriteria.TIMESTAMP:
        if tolerance is None:
            return OperationResult.failure('Timestamp comparison needs a tolerance.')
        if tolerance < timedelta(0):
            return OperationResult.failure('Timestamp tolerance cannot be negative.')
        left_times = sorted(entry.last_modified for entry in left_files)
        right_times = sorted(entry.last_modified for entry in right_files)
        left_count = _mark_within(left_files, right_times, tolerance)
        right_count = _mark_within(right_files, left_times, tolerance)
    else:
        if criteria is ComparisonCriteria.NAME:
            key = lambda entry: entry.name.casefold()
        else:
            key = lambda entry: entry.size
        left_keys = {key(entry) for entry in left_files}
        right_keys = {key(entry) for entry in right_files}
        left_count = _mark_matching(left_files, right_keys, key)
        right_count = _mark_matching(right_files, left_keys, key)

    total = left_count + right_count
    LOGGER.info('Compare by %s marked %d left, %d right', criteria.value, left_count, right_count)
    return OperationResult(
        True,
        f'Marked {total} matching file(s) ({left_count} left, {right_count} right).',
        files_processed=total,
    )
