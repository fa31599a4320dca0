"""
Pane state: one side of the dual-pane view.

A pane is either in a real directory or inside an archive, where the
archive's member paths are presented as virtual folders. Archives found
while browsing another archive are plain files, so a pane is never more
than one archive deep.
"""
import logging
import os

from .archives.base import normalize_internal_path
from .listing import apply_mask, list_directory, parse_mask, sort_entries
from .models import SortMode

LOGGER = logging.getLogger(__name__)


class PaneState:
    """Listing, cursor, sort/mask and mark state for one pane."""

    def __init__(self, path=None, registry=None, sort_mode=SortMode.NAME_ASC, mask='*', show_hidden=True):
        self.registry = registry
        self.directory = os.path.abspath(os.path.expanduser(path or os.getcwd()))
        self.entries = []
        self.cursor = 0
        self.scroll_offset = 0
        self.sort_mode = SortMode(sort_mode)
        self.mask = mask or '*'
        self.show_hidden = bool(show_hidden)
        self.error_message = None

        self.is_in_virtual_folder = False
        self.virtual_archive_path = None
        self.virtual_parent_path = None
        self.virtual_internal_path = ''

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    @property
    def current_path(self):
        """Display path: the real directory, or ``archive/internal`` when virtual."""
        if not self.is_in_virtual_folder:
            return self.directory
        if self.virtual_internal_path:
            return f'{self.virtual_archive_path}/{self.virtual_internal_path}'
        return self.virtual_archive_path

    def location_label(self):
        label = self.current_path
        if self.mask and self.mask != '*':
            label = f'{label} [{self.mask}]'
        return label

    def _load(self):
        if self.is_in_virtual_folder:
            raw = self.registry.list_contents(
                self.virtual_archive_path, self.virtual_internal_path, SortMode.UNSORTED
            )
            if not self.show_hidden:
                raw = [entry for entry in raw if not entry.is_hidden]
        else:
            raw = list_directory(self.directory, registry=self.registry, show_hidden=self.show_hidden)
        return sort_entries(apply_mask(raw, self.mask), self.sort_mode)

    def reload(self, keep_marks=True, focus_name=None):
        """Re-list the current location, restoring marks and cursor by name."""
        marked = {entry.name for entry in self.entries if entry.is_marked} if keep_marks else set()
        if focus_name is None:
            selected = self.selected_entry
            focus_name = selected.name if selected is not None else None
        try:
            entries = self._load()
            self.error_message = None
        except OSError as exc:
            LOGGER.warning('Cannot list %s: %s', self.current_path, exc)
            entries = []
            self.error_message = str(exc)
        for entry in entries:
            if entry.name in marked:
                entry.is_marked = True
        self.entries = entries
        self.cursor = 0
        if focus_name is not None:
            for idx, entry in enumerate(entries):
                if entry.name == focus_name:
                    self.cursor = idx
                    break
        self.scroll_offset = min(self.scroll_offset, self.cursor)
        return self.entries

    def refresh(self):
        return self.reload(keep_marks=True)

    def _leave_virtual(self):
        self.is_in_virtual_folder = False
        self.virtual_archive_path = None
        self.virtual_parent_path = None
        self.virtual_internal_path = ''

    def navigate_to(self, path):
        """Show a real directory; returns False when it is not a directory."""
        path = os.path.abspath(os.path.expanduser(str(path)))
        if not os.path.isdir(path):
            self.error_message = f'Not a directory: {path}'
            return False
        self._leave_virtual()
        self.directory = path
        self.scroll_offset = 0
        self.reload(keep_marks=False, focus_name='')
        return True

    def enter_archive(self, archive_path):
        """Switch into the root of an archive; stays put if it cannot be read."""
        archive_path = os.path.abspath(archive_path)
        try:
            raw = self.registry.list_contents(archive_path, '', SortMode.UNSORTED)
        except OSError as exc:
            LOGGER.warning('Cannot open archive %s: %s', archive_path, exc)
            self.error_message = str(exc)
            return False
        LOGGER.debug('Entering archive %s (%d root entries)', archive_path, len(raw))
        self.virtual_parent_path = self.directory
        self.virtual_archive_path = archive_path
        self.virtual_internal_path = ''
        self.is_in_virtual_folder = True
        self.scroll_offset = 0
        self.reload(keep_marks=False, focus_name='')
        return True

    def open_entry(self, entry):
        """Open a directory, virtual folder or archive; returns True if the pane moved."""
        if entry is None:
            return False
        if self.is_in_virtual_folder:
            if not entry.is_virtual_folder:
                return False
            self.virtual_internal_path = normalize_internal_path(entry.full_path)
            self.scroll_offset = 0
            self.reload(keep_marks=False, focus_name='')
            return True
        if entry.is_directory:
            return self.navigate_to(entry.full_path)
        if entry.is_archive and self.registry is not None:
            return self.enter_archive(entry.full_path)
        return False

    def open_selected(self):
        return self.open_entry(self.selected_entry)

    def go_to_parent(self):
        """Step up one level; leaves the archive when already at its root."""
        if self.is_in_virtual_folder:
            if self.virtual_internal_path:
                parent, _, child = self.virtual_internal_path.rpartition('/')
                self.virtual_internal_path = parent
                self.reload(keep_marks=False, focus_name=child)
                return True
            archive_name = os.path.basename(self.virtual_archive_path)
            self.directory = self.virtual_parent_path
            self._leave_virtual()
            self.reload(keep_marks=False, focus_name=archive_name)
            return True

        parent = os.path.dirname(self.directory)
        if not parent or parent == self.directory:
            return False
        child = os.path.basename(self.directory)
        self.directory = parent
        self.reload(keep_marks=False, focus_name=child)
        return True

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def selected_entry(self):
        if 0 <= self.cursor < len(self.entries):
            return self.entries[self.cursor]
        return None

    def move_cursor(self, delta, page_height=None):
        if not self.entries:
            self.cursor = 0
            return
        self.cursor = max(0, min(len(self.entries) - 1, self.cursor + delta))
        if page_height:
            self.ensure_visible(page_height)

    def cursor_home(self):
        self.cursor = 0
        self.scroll_offset = 0

    def cursor_end(self, page_height=None):
        self.cursor = max(0, len(self.entries) - 1)
        if page_height:
            self.ensure_visible(page_height)

    def ensure_visible(self, page_height):
        page_height = max(1, int(page_height))
        if self.cursor < self.scroll_offset:
            self.scroll_offset = self.cursor
        elif self.cursor >= self.scroll_offset + page_height:
            self.scroll_offset = self.cursor - page_height + 1
        self.scroll_offset = max(0, min(self.scroll_offset, max(0, len(self.entries) - 1)))

    # ------------------------------------------------------------------
    # Sort / filter
    # ------------------------------------------------------------------

    def set_sort_mode(self, mode):
        self.sort_mode = SortMode(mode)
        self.reload(keep_marks=True)

    def cycle_sort_mode(self):
        modes = list(SortMode)
        self.set_sort_mode(modes[(modes.index(self.sort_mode) + 1) % len(modes)])
        return self.sort_mode

    def set_mask(self, mask):
        self.mask = str(mask or '').strip() or '*'
        self.reload(keep_marks=True)

    def toggle_hidden(self):
        self.show_hidden = not self.show_hidden
        self.reload(keep_marks=True)
        return self.show_hidden

    # ------------------------------------------------------------------
    # Marks
    # ------------------------------------------------------------------

    @property
    def marked_indices(self):
        return {idx for idx, entry in enumerate(self.entries) if entry.is_marked}

    def marked_entries(self):
        return [entry for entry in self.entries if entry.is_marked]

    def entries_for_operation(self):
        """Marked entries, or the entry under the cursor when nothing is marked."""
        marked = self.marked_entries()
        if marked:
            return marked
        selected = self.selected_entry
        return [selected] if selected is not None else []

    def toggle_mark(self, index=None):
        idx = self.cursor if index is None else index
        if 0 <= idx < len(self.entries):
            entry = self.entries[idx]
            entry.is_marked = not entry.is_marked
            return entry.is_marked
        return False

    def mark_range(self, start, end):
        if not (0 <= start < len(self.entries) and 0 <= end < len(self.entries)):
            return
        for idx in range(min(start, end), max(start, end) + 1):
            self.entries[idx].is_marked = True

    def invert_marks(self):
        for entry in self.entries:
            entry.is_marked = not entry.is_marked

    def clear_marks(self):
        for entry in self.entries:
            entry.is_marked = False

    def mark_by_mask(self, mask):
        """Additively mark entries matching a mask; returns how many matched."""
        includes, excludes = parse_mask(mask)
        count = 0
        for entry in self.entries:
            if not any(p.matches(entry.name) for p in includes):
                continue
            if any(p.matches(entry.name) for p in excludes):
                continue
            entry.is_marked = True
            count += 1
        return count
