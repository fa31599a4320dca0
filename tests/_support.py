"""Shared test helpers.

A small fake `curses` module for platforms where `_curses` is unavailable,
a recording screen double, and filesystem fixtures.
"""

from __future__ import annotations

import os
import types


def write_file(root, relative, data=b"", mtime=None):
    """Create ``root/relative`` (parents included) and return its path."""
    path = os.path.join(root, *relative.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    if isinstance(data, str):
        data = data.encode("utf-8")
    with open(path, "wb") as handle:
        handle.write(data)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


def read_file(root, relative):
    with open(os.path.join(root, *relative.split("/")), "rb") as handle:
        return handle.read()


class FakeScreen:
    """Records addnstr calls; enough of a curses window for draw() tests."""

    def __init__(self, height=30, width=100, keys=None):
        self.height = height
        self.width = width
        self.calls = []
        self.keys = list(keys or [])
        self.timeout_ms = None

    def getmaxyx(self):
        return self.height, self.width

    def addnstr(self, y, x, text, n, attr=0):
        self.calls.append((y, x, text[:n], attr))

    def text(self):
        return "\n".join(call[2] for call in self.calls)

    def erase(self):
        self.calls = []

    def noutrefresh(self):
        return None

    def keypad(self, flag):
        return None

    def nodelay(self, flag):
        return None

    def timeout(self, value):
        self.timeout_ms = value

    def get_wch(self):
        if not self.keys:
            raise Exception("no input")
        return self.keys.pop(0)


def make_fake_curses() -> types.ModuleType:
    """Return a minimal fake curses module for unit tests."""

    fake = types.ModuleType("curses")

    # Common attributes used across the codebase.
    fake.A_BOLD = 1
    fake.A_REVERSE = 2
    fake.A_DIM = 4

    fake.COLOR_BLACK = 0
    fake.COLOR_RED = 1
    fake.COLOR_GREEN = 2
    fake.COLOR_YELLOW = 3
    fake.COLOR_BLUE = 4
    fake.COLOR_CYAN = 6
    fake.COLOR_WHITE = 7

    # Key codes (values are conventional but arbitrary for our logic tests).
    fake.KEY_UP = 259
    fake.KEY_DOWN = 258
    fake.KEY_LEFT = 260
    fake.KEY_RIGHT = 261
    fake.KEY_HOME = 262
    fake.KEY_END = 360
    fake.KEY_PPAGE = 339
    fake.KEY_NPAGE = 338
    fake.KEY_BACKSPACE = 263
    fake.KEY_DC = 330
    fake.KEY_IC = 331
    fake.KEY_BTAB = 353
    fake.KEY_ENTER = 343
    fake.KEY_RESIZE = 410
    fake.KEY_F2 = 266
    fake.KEY_F5 = 269
    fake.KEY_F6 = 270
    fake.KEY_F7 = 271
    fake.KEY_F8 = 272
    fake.KEY_F10 = 274

    # API surface used by the code under test.
    fake.error = Exception
    fake.color_pair = lambda value: int(value) * 10
    fake.init_pair = lambda *_args, **_kwargs: None
    fake.start_color = lambda: None
    fake.use_default_colors = lambda: None
    fake.curs_set = lambda *_args: None
    fake.noecho = lambda: None
    fake.cbreak = lambda: None
    fake.doupdate = lambda: None
    fake.update_lines_cols = lambda: None
    fake.endwin = lambda: None

    return fake
