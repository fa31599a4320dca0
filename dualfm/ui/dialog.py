"""
Dialog Component.
"""
import curses
import os

from ..core.models import CollisionAction, CollisionDecision, format_size
from ..utils import safe_addstr, draw_box, normalize_key_code, theme_attr


def _wrap_dialog_message(message, inner_w):
    """Word-wrap a dialog message into a list of lines."""
    lines = []
    for paragraph in str(message).split('\n'):
        words = paragraph.split()
        if not words:
            lines.append('')
            continue
        line = ''
        for word in words:
            needs_space = 1 if line else 0
            if len(line) + len(word) + needs_space <= inner_w:
                line = f'{line} {word}' if line else word
            else:
                if line:
                    lines.append(line)
                while len(word) > inner_w:
                    lines.append(word[:inner_w])
                    word = word[inner_w:]
                line = word
        lines.append(line)
    return lines or ['']


def _dialog_origin(stdscr, width, height):
    max_h, max_w = stdscr.getmaxyx()
    return max(0, (max_w - width) // 2), max(0, (max_h - height) // 2)


def _draw_frame(stdscr, x, y, width, height, title):
    attr = theme_attr('dialog')
    title_attr = theme_attr('pane_title') | curses.A_BOLD

    shadow_attr = curses.A_DIM
    for row in range(height):
        safe_addstr(stdscr, y + row + 1, x + 2, ' ' * width, shadow_attr)
    for row in range(height):
        safe_addstr(stdscr, y + row, x, ' ' * width, attr)

    draw_box(stdscr, y, x, height, width, attr, double=True)
    title_text = f' {title} '
    safe_addstr(stdscr, y, x + 1, title_text.ljust(width - 2), title_attr)
    return attr


class Dialog:
    """Modal dialog box.

    ``handle_key`` returns the pressed button index or -1. Escape answers
    with the last button, which is Cancel by convention.
    """

    def __init__(self, title, message, buttons=None, width=50):
        self.title = title
        self.message = message
        self.buttons = buttons or ['OK']
        self.selected = 0
        self.callback = None
        self.width = max(width, len(title) + 8)

        inner_w = self.width - 6
        self.lines = _wrap_dialog_message(message, inner_w)
        self.height = len(self.lines) + 7

    def draw(self, stdscr):
        x, y = _dialog_origin(stdscr, self.width, self.height)
        attr = _draw_frame(stdscr, x, y, self.width, self.height, self.title)

        for i, line in enumerate(self.lines):
            safe_addstr(stdscr, y + 2 + i, x + 3, line, attr)

        btn_y = y + self.height - 3
        total_btn_width = sum(len(b) + 6 for b in self.buttons) + (len(self.buttons) - 1) * 2
        btn_x = x + max(1, (self.width - total_btn_width) // 2)

        for i, btn_text in enumerate(self.buttons):
            btn_w = len(btn_text) + 4
            if i == self.selected:
                btn_attr = theme_attr('button_selected') | curses.A_BOLD
                label = f'> {btn_text} <'
            else:
                btn_attr = theme_attr('button')
                label = f'[ {btn_text} ]'
            safe_addstr(stdscr, btn_y, btn_x, label, btn_attr)
            btn_x += btn_w + 2

    def handle_key(self, key):
        """Handle keyboard input. Returns button index or -1."""
        key_code = normalize_key_code(key)

        if key_code in (curses.KEY_LEFT, curses.KEY_BTAB):
            self.selected = (self.selected - 1) % len(self.buttons)
        elif key_code in (curses.KEY_RIGHT, 9):
            self.selected = (self.selected + 1) % len(self.buttons)
        elif key_code in (curses.KEY_ENTER, 10, 13):
            return self.selected
        elif key_code == 27:  # Escape
            return len(self.buttons) - 1
        else:
            # First letter of a button label picks it.
            if isinstance(key, str) and len(key) == 1:
                for i, label in enumerate(self.buttons):
                    if label[:1].lower() == key.lower():
                        return i
        return -1


class ChoiceDialog(Dialog):
    """Dialog whose callback receives the chosen button index.

    The last button is Cancel and never reaches the callback.
    """

    def handle_key(self, key):
        if isinstance(key, str) and key.isdigit():
            idx = int(key) - 1
            if 0 <= idx < len(self.buttons):
                return idx
        return super().handle_key(key)


class InputDialog(Dialog):
    """Modal dialog with a text input field."""

    def __init__(self, title, message, initial_value='', width=50):
        super().__init__(title, message, ['OK', 'Cancel'], width)
        self.value = initial_value
        self.height += 3
        self.cursor_pos = len(initial_value)

    def draw(self, stdscr):
        super().draw(stdscr)
        x, y = _dialog_origin(stdscr, self.width, self.height)

        # Input row sits between the message and the buttons.
        input_y = y + self.height - 5
        input_x = x + 4
        input_w = self.width - 8

        attr = theme_attr('pane_body')
        safe_addstr(stdscr, input_y, input_x, ' ' * input_w, attr)

        start = max(0, self.cursor_pos - input_w + 1)
        display_val = self.value[start:start + input_w - 1]
        safe_addstr(stdscr, input_y, input_x, display_val, attr)
        cursor_screen_x = input_x + self.cursor_pos - start
        cursor_char = self.value[self.cursor_pos] if self.cursor_pos < len(self.value) else ' '
        safe_addstr(stdscr, input_y, cursor_screen_x, cursor_char, attr | curses.A_REVERSE)

    def handle_key(self, key):
        key_code = normalize_key_code(key)

        if key_code in (curses.KEY_ENTER, 10, 13):
            return 0
        elif key_code == 27:
            return 1

        elif key_code in (curses.KEY_BACKSPACE, 127, 8):
            if self.cursor_pos > 0:
                self.value = self.value[:self.cursor_pos - 1] + self.value[self.cursor_pos:]
                self.cursor_pos -= 1
        elif key_code == curses.KEY_DC:
            if self.cursor_pos < len(self.value):
                self.value = self.value[:self.cursor_pos] + self.value[self.cursor_pos + 1:]
        elif key_code == curses.KEY_LEFT:
            if self.cursor_pos > 0:
                self.cursor_pos -= 1
        elif key_code == curses.KEY_RIGHT:
            if self.cursor_pos < len(self.value):
                self.cursor_pos += 1
        elif key_code == curses.KEY_HOME:
            self.cursor_pos = 0
        elif key_code == curses.KEY_END:
            self.cursor_pos = len(self.value)
        elif isinstance(key, str) and key.isprintable() and key not in ('\n', '\r', '\t'):
            self.value = self.value[:self.cursor_pos] + key + self.value[self.cursor_pos:]
            self.cursor_pos += 1
        elif isinstance(key, int) and 32 <= key <= 126:
            self.value = self.value[:self.cursor_pos] + chr(key) + self.value[self.cursor_pos:]
            self.cursor_pos += 1

        return -1


class ProgressDialog:
    """Modal progress dialog for background operations.

    Shows the latest ``ProgressEvent``; Escape or Enter asks for cancellation
    (``handle_key`` returns 0), the app decides what that means.
    """

    SPINNER_FRAMES = ('|', '/', '-', '\\')

    def __init__(self, title, message, width=60):
        self.title = title
        self.message = message
        self.buttons = ['Cancel']
        self.width = max(width, len(title) + 8)
        self.lines = _wrap_dialog_message(message, self.width - 6)
        self.elapsed_seconds = 0.0
        self.event = None
        self.cancel_requested = False
        self.height = len(self.lines) + 10

    def set_elapsed(self, seconds):
        """Update elapsed runtime shown by the spinner row."""
        self.elapsed_seconds = max(0.0, float(seconds))

    def set_progress(self, event):
        self.event = event

    def _bar(self, width):
        pct = self.event.percent_complete if self.event is not None else 0.0
        filled = int(round(width * pct / 100.0))
        return '#' * filled + '.' * (width - filled), pct

    def draw(self, stdscr):
        x, y = _dialog_origin(stdscr, self.width, self.height)
        attr = _draw_frame(stdscr, x, y, self.width, self.height, self.title)
        info_attr = theme_attr('status') | curses.A_BOLD
        inner_w = self.width - 6

        for i, line in enumerate(self.lines):
            safe_addstr(stdscr, y + 2 + i, x + 3, line[:inner_w], attr)

        row = y + 2 + len(self.lines) + 1
        event = self.event
        if event is not None:
            current = f'{event.current_file_index}/{event.total_files}  {event.current_file}'
            safe_addstr(stdscr, row, x + 3, current[:inner_w].ljust(inner_w), attr)
            if event.total_bytes:
                sizes = f'{format_size(event.bytes_processed)} of {format_size(event.total_bytes)}'
                safe_addstr(stdscr, row + 1, x + 3, sizes[:inner_w], attr)
        bar, pct = self._bar(inner_w - 7)
        safe_addstr(stdscr, row + 2, x + 3, f'{bar} {pct:5.1f}%', theme_attr('progress'))

        spinner_idx = int(self.elapsed_seconds * 8) % len(self.SPINNER_FRAMES)
        spinner = self.SPINNER_FRAMES[spinner_idx]
        state = 'Cancelling' if self.cancel_requested else 'Working'
        status = f'{state} {spinner}  {self.elapsed_seconds:5.1f}s   Esc: cancel'
        safe_addstr(stdscr, y + self.height - 2, x + 3, status.ljust(inner_w), info_attr)

    def handle_key(self, key):
        key_code = normalize_key_code(key)
        if key_code in (27, 10, 13, curses.KEY_ENTER):
            self.cancel_requested = True
            return 0
        return -1


COLLISION_BUTTONS = (
    ('Overwrite', CollisionAction.OVERWRITE),
    ('All', CollisionAction.OVERWRITE_ALL),
    ('Skip', CollisionAction.SKIP),
    ('Skip all', CollisionAction.SKIP_ALL),
    ('Rename', CollisionAction.RENAME),
    ('Cancel', CollisionAction.CANCEL),
)


class CollisionDialog(Dialog):
    """Ask what to do with an existing destination.

    ``decision_for(index)`` maps a button to a ``CollisionDecision``; the
    Rename button switches the dialog to a name prompt first.
    """

    def __init__(self, dest_path, width=72):
        self.dest_path = dest_path
        name = os.path.basename(dest_path)
        message = f'Destination already exists:\n{dest_path}'
        super().__init__('File exists', message, [label for label, _ in COLLISION_BUTTONS], width)
        self.renaming = False
        self.value = name
        self.height += 2

    def decision_for(self, index):
        action = COLLISION_BUTTONS[index][1]
        if action is CollisionAction.RENAME:
            return CollisionDecision(action, self.value.strip())
        return CollisionDecision(action)

    def draw(self, stdscr):
        super().draw(stdscr)
        if not self.renaming:
            return
        x, y = _dialog_origin(stdscr, self.width, self.height)
        input_y = y + self.height - 5
        input_w = self.width - 8
        attr = theme_attr('pane_body')
        safe_addstr(stdscr, input_y, x + 4, 'New name:'.ljust(input_w), theme_attr('dialog'))
        safe_addstr(stdscr, input_y + 1, x + 4, ' ' * input_w, attr)
        safe_addstr(stdscr, input_y + 1, x + 4, self.value[-(input_w - 1):], attr)

    def handle_key(self, key):
        key_code = normalize_key_code(key)
        if not self.renaming:
            result = super().handle_key(key)
            if result == 4:
                self.renaming = True
                self.selected = 4
                return -1
            return result

        if key_code in (curses.KEY_ENTER, 10, 13):
            return 4 if self.value.strip() else -1
        if key_code == 27:
            self.renaming = False
            return -1
        if key_code in (curses.KEY_BACKSPACE, 127, 8):
            self.value = self.value[:-1]
        elif isinstance(key, str) and key.isprintable() and key not in ('\n', '\r', '\t'):
            self.value += key
        elif isinstance(key, int) and 32 <= key <= 126:
            self.value += chr(key)
        return -1
