"""
Dual pane window: draws two PaneStates side by side and maps keys to actions.
"""
import curses

from ..constants import KEY_BAR_HEIGHT, PANE_MIN_WIDTH, STATUS_BAR_HEIGHT
from ..core.actions import ActionResult, ActionType
from ..core.models import format_size
from ..utils import draw_box, fill_rect, normalize_key_code, safe_addstr, theme_attr


class DualPaneWindow:
    """Full-screen window owning the left and right panes."""

    KEY_F2 = getattr(curses, 'KEY_F2', -1)
    KEY_F5 = getattr(curses, 'KEY_F5', -1)
    KEY_F6 = getattr(curses, 'KEY_F6', -1)
    KEY_F7 = getattr(curses, 'KEY_F7', -1)
    KEY_F8 = getattr(curses, 'KEY_F8', -1)
    KEY_F10 = getattr(curses, 'KEY_F10', -1)
    KEY_INSERT = getattr(curses, 'KEY_IC', -1)
    KEY_DELETE = getattr(curses, 'KEY_DC', -1)

    def __init__(self, left, right):
        self.panes = [left, right]
        self.active_pane = 0
        self.page_height = 10

    @property
    def active(self):
        return self.panes[self.active_pane]

    @property
    def inactive(self):
        return self.panes[1 - self.active_pane]

    def switch_pane(self):
        self.active_pane = 1 - self.active_pane
        return ActionResult(ActionType.REFRESH)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def body_rect(self, stdscr):
        """Return (x, y, w, h) of the area shared by both panes."""
        max_h, max_w = stdscr.getmaxyx()
        return 0, 0, max_w, max(0, max_h - STATUS_BAR_HEIGHT - KEY_BAR_HEIGHT)

    def draw(self, stdscr):
        bx, by, bw, bh = self.body_rect(stdscr)
        if bw < PANE_MIN_WIDTH * 2 or bh < 5:
            safe_addstr(stdscr, 0, 0, 'Terminal too small', theme_attr('status'))
            return
        left_w = bw // 2
        self._draw_pane(stdscr, 0, bx, by, left_w, bh)
        self._draw_pane(stdscr, 1, bx + left_w, by, bw - left_w, bh)

    def _entry_attr(self, pane, idx, entry, is_active):
        if idx == pane.cursor and is_active:
            return theme_attr('file_selected') | curses.A_BOLD
        if entry.is_marked:
            return theme_attr('file_marked') | curses.A_BOLD
        if entry.is_directory:
            return theme_attr('file_directory')
        if entry.is_archive:
            return theme_attr('file_archive')
        return theme_attr('pane_body')

    def _draw_pane(self, stdscr, pane_id, x, y, w, h):
        pane = self.panes[pane_id]
        is_active = pane_id == self.active_pane
        body_attr = theme_attr('pane_body')
        border_attr = theme_attr('pane_border_active' if is_active else 'pane_border')

        fill_rect(stdscr, y, x, h, w, body_attr)
        draw_box(stdscr, y, x, h, w, border_attr, double=is_active)

        title = f' {pane.location_label()} '
        if len(title) > w - 4:
            title = ' ~' + title[-(w - 6):]
        title_attr = theme_attr('pane_title') if is_active else border_attr
        safe_addstr(stdscr, y, x + 2, title, title_attr)

        inner_w = w - 2
        list_h = h - 3
        self.page_height = max(1, list_h)
        pane.ensure_visible(self.page_height)

        if pane.error_message:
            safe_addstr(stdscr, y + 1, x + 1, f'Error: {pane.error_message}'[:inner_w], body_attr)

        first_row = y + (2 if pane.error_message else 1)
        rows = list_h - (1 if pane.error_message else 0)
        for k in range(rows):
            idx = pane.scroll_offset + k
            if idx >= len(pane.entries):
                break
            entry = pane.entries[idx]
            attr = self._entry_attr(pane, idx, entry, is_active)
            safe_addstr(stdscr, first_row + k, x + 1, entry.format_row(inner_w), attr)

        marked = pane.marked_entries()
        if marked:
            total = sum(entry.size for entry in marked)
            footer = f' {len(marked)} marked, {format_size(total)} '
        else:
            footer = f' {len(pane.entries)} items '
        footer += f'[{pane.sort_mode.label}] '
        safe_addstr(stdscr, y + h - 2, x + 1, '-' * inner_w, border_attr)
        safe_addstr(stdscr, y + h - 2, x + 2, footer[: inner_w - 2], border_attr)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    def _navigation_key(self, key_code):
        pane = self.active
        page = self.page_height
        if key_code == curses.KEY_UP:
            pane.move_cursor(-1, page)
        elif key_code == curses.KEY_DOWN:
            pane.move_cursor(1, page)
        elif key_code == curses.KEY_PPAGE:
            pane.move_cursor(-page, page)
        elif key_code == curses.KEY_NPAGE:
            pane.move_cursor(page, page)
        elif key_code == curses.KEY_HOME:
            pane.cursor_home()
        elif key_code == curses.KEY_END:
            pane.cursor_end(page)
        else:
            return False
        return True

    def _open_selected(self):
        pane = self.active
        entry = pane.selected_entry
        if entry is None:
            return None
        if pane.open_selected():
            return ActionResult(ActionType.REFRESH)
        if pane.error_message:
            return ActionResult(ActionType.ERROR, pane.error_message)
        return None

    def _go_parent(self):
        pane = self.active
        pane.go_to_parent()
        return ActionResult(ActionType.REFRESH)

    def _toggle_mark(self):
        pane = self.active
        pane.toggle_mark()
        pane.move_cursor(1, self.page_height)
        return ActionResult(ActionType.REFRESH)

    def handle_key(self, key):
        """Return an ActionResult for the key, or None when it is ignored."""
        key_code = normalize_key_code(key)
        if key_code is None:
            return None

        if self._navigation_key(key_code):
            return ActionResult(ActionType.REFRESH)

        if key_code in (10, 13, curses.KEY_ENTER):
            return self._open_selected()
        if key_code in (curses.KEY_BACKSPACE, 127, 8):
            return self._go_parent()
        if key_code == 9:
            return self.switch_pane()
        if key_code in (self.KEY_INSERT, ord(' ')):
            return self._toggle_mark()

        function_keys = {
            self.KEY_F2: ActionType.REQUEST_RENAME,
            self.KEY_F5: ActionType.REQUEST_COPY,
            self.KEY_F6: ActionType.REQUEST_MOVE,
            self.KEY_F7: ActionType.REQUEST_MKDIR,
            self.KEY_F8: ActionType.REQUEST_DELETE,
            self.KEY_DELETE: ActionType.REQUEST_DELETE,
            self.KEY_F10: ActionType.QUIT,
        }
        if key_code in function_keys and key_code != -1:
            return ActionResult(function_keys[key_code])

        if not isinstance(key, str):
            return None
        letter = key.lower()
        if key == '*':
            self.active.invert_marks()
            return ActionResult(ActionType.REFRESH)
        if key == '+':
            return ActionResult(ActionType.REQUEST_MARK_MASK)
        if key == '-':
            self.active.clear_marks()
            return ActionResult(ActionType.REFRESH)
        if letter == 'o':
            mode = self.active.cycle_sort_mode()
            return ActionResult(ActionType.STATUS, f'Sort: {mode.label}')
        if letter == 'h':
            shown = self.active.toggle_hidden()
            return ActionResult(ActionType.STATUS, 'Hidden files shown' if shown else 'Hidden files hidden')
        if letter == 'r':
            self.active.refresh()
            return ActionResult(ActionType.REFRESH)

        letter_actions = {
            's': ActionType.REQUEST_SPLIT,
            'j': ActionType.REQUEST_JOIN,
            'c': ActionType.REQUEST_COMPARE,
            'p': ActionType.REQUEST_PACK,
            'u': ActionType.REQUEST_UNPACK,
            'm': ActionType.REQUEST_MASK,
            'z': ActionType.REQUEST_DIR_SIZE,
            'q': ActionType.QUIT,
        }
        if letter in letter_actions:
            return ActionResult(letter_actions[letter])
        return None
