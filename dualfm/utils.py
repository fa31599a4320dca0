"""
Curses drawing helpers for DualFM.
"""
import curses
import locale

from .constants import (
    ASCII_BOX, BOX_TL, BOX_TR, BOX_BL, BOX_BR, BOX_H, BOX_V,
    SB_TL, SB_TR, SB_BL, SB_BR, SB_H, SB_V,
)
from .theme import ROLE_TO_PAIR_ID, get_theme

_UNICODE_OK = None


def init_colors(theme_key_or_obj=None):
    """Initialize curses color pairs from the active semantic theme."""
    curses.start_color()
    curses.use_default_colors()

    if theme_key_or_obj is None:
        theme = get_theme(None)
    elif isinstance(theme_key_or_obj, str):
        theme = get_theme(theme_key_or_obj)
    else:
        theme = theme_key_or_obj

    for role, pair_id in ROLE_TO_PAIR_ID.items():
        fg, bg = theme.pairs_base[role]
        curses.init_pair(pair_id, fg, bg)
    return theme


def theme_attr(role):
    """Return curses color attribute for a semantic role."""
    return curses.color_pair(ROLE_TO_PAIR_ID[role])


def safe_addstr(win, y, x, text, attr=0):
    """Write string safely, clipping to window bounds."""
    h, w = win.getmaxyx()
    if y < 0 or y >= h or x >= w:
        return
    max_len = w - x - 1
    if max_len <= 0:
        return
    try:
        win.addnstr(y, x, text, max_len, attr)
    except curses.error:
        pass


_CONTROL_KEYS = {'\n': 10, '\r': 10, '\x1b': 27, '\t': 9, '\x7f': 127, '\b': 8}


def normalize_key_code(key):
    """Map a get_wch() result to an int key code; None for multi-char or non-str input."""
    if isinstance(key, int):
        return key
    if not isinstance(key, str) or len(key) != 1:
        return None
    return _CONTROL_KEYS.get(key, ord(key))


def check_unicode_support():
    """Check if terminal supports Unicode."""
    try:
        '╔'.encode(locale.getpreferredencoding())
        return True
    except (UnicodeEncodeError, LookupError):
        return False


def _box_chars(double):
    global _UNICODE_OK
    if _UNICODE_OK is None:
        _UNICODE_OK = check_unicode_support()
    if not _UNICODE_OK:
        return ASCII_BOX
    if double:
        return BOX_TL, BOX_TR, BOX_BL, BOX_BR, BOX_H, BOX_V
    return SB_TL, SB_TR, SB_BL, SB_BR, SB_H, SB_V


def draw_box(win, y, x, h, w, attr=0, double=True):
    """Draw a box with double or single line borders."""
    tl, tr, bl, br, hz, vt = _box_chars(double)
    safe_addstr(win, y, x, tl + hz * (w - 2) + tr, attr)
    for i in range(1, h - 1):
        safe_addstr(win, y + i, x, vt, attr)
        safe_addstr(win, y + i, x + w - 1, vt, attr)
    safe_addstr(win, y + h - 1, x, bl + hz * (w - 2) + br, attr)


def fill_rect(win, y, x, h, w, attr=0):
    for i in range(h):
        safe_addstr(win, y + i, x, ' ' * w, attr)
