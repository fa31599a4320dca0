"""Theme definitions and lookup helpers for DualFM."""

from dataclasses import dataclass
import curses
from typing import Optional

from .constants import (
    C_BUTTON,
    C_BUTTON_SEL,
    C_DIALOG,
    C_FM_ARCHIVE,
    C_FM_DIR,
    C_FM_MARKED,
    C_FM_SELECTED,
    C_KEYBAR,
    C_PANE_BODY,
    C_PANE_BORDER,
    C_PANE_BORDER_ACTIVE,
    C_PANE_TITLE,
    C_PROGRESS,
    C_STATUS,
)

# Test doubles may expose only a subset of color constants.
for _name, _fallback in {
    "COLOR_BLACK": 0,
    "COLOR_BLUE": 4,
    "COLOR_CYAN": 6,
    "COLOR_GREEN": 2,
    "COLOR_WHITE": 7,
    "COLOR_YELLOW": 3,
}.items():
    if not hasattr(curses, _name):
        setattr(curses, _name, _fallback)

DEFAULT_THEME = "classic"

ROLE_TO_PAIR_ID = {
    "pane_body": C_PANE_BODY,
    "pane_border": C_PANE_BORDER,
    "pane_border_active": C_PANE_BORDER_ACTIVE,
    "pane_title": C_PANE_TITLE,
    "file_selected": C_FM_SELECTED,
    "file_directory": C_FM_DIR,
    "file_marked": C_FM_MARKED,
    "file_archive": C_FM_ARCHIVE,
    "status": C_STATUS,
    "keybar": C_KEYBAR,
    "dialog": C_DIALOG,
    "button": C_BUTTON,
    "button_selected": C_BUTTON_SEL,
    "progress": C_PROGRESS,
}


def _mk_pairs(fg_bg):
    return {
        "pane_body": fg_bg[0],
        "pane_border": fg_bg[0],
        "pane_border_active": fg_bg[1],
        "pane_title": fg_bg[2],
        "file_selected": fg_bg[3],
        "file_directory": fg_bg[4],
        "file_marked": fg_bg[5],
        "file_archive": fg_bg[6],
        "status": fg_bg[7],
        "keybar": fg_bg[2],
        "dialog": fg_bg[8],
        "button": fg_bg[8],
        "button_selected": fg_bg[3],
        "progress": fg_bg[3],
    }


@dataclass(frozen=True)
class Theme:
    """DualFM semantic theme definition."""

    key: str
    label: str
    pairs_base: dict
    monochrome: bool = False


THEMES = {
    "classic": Theme(
        key="classic",
        label="Classic blue",
        pairs_base=_mk_pairs(
            (
                (curses.COLOR_CYAN, curses.COLOR_BLUE),
                (curses.COLOR_WHITE, curses.COLOR_BLUE),
                (curses.COLOR_BLACK, curses.COLOR_CYAN),
                (curses.COLOR_BLACK, curses.COLOR_CYAN),
                (curses.COLOR_WHITE, curses.COLOR_BLUE),
                (curses.COLOR_YELLOW, curses.COLOR_BLUE),
                (curses.COLOR_GREEN, curses.COLOR_BLUE),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_BLACK, curses.COLOR_WHITE),
            )
        ),
    ),
    "mono": Theme(
        key="mono",
        label="Monochrome",
        pairs_base=_mk_pairs(
            (
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_BLACK, curses.COLOR_WHITE),
                (curses.COLOR_BLACK, curses.COLOR_WHITE),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_WHITE, curses.COLOR_BLACK),
                (curses.COLOR_BLACK, curses.COLOR_WHITE),
            )
        ),
        monochrome=True,
    ),
}


def list_themes():
    """Return themes in deterministic UI order."""
    order = ("classic", "mono")
    return [THEMES[key] for key in order]


def get_theme(theme_key: Optional[str]) -> Theme:
    """Resolve theme by key with fallback to default."""
    if not theme_key:
        return THEMES[DEFAULT_THEME]
    return THEMES.get(theme_key, THEMES[DEFAULT_THEME])
