"""Terminal bootstrap helpers for DualFM startup."""

import curses


def configure_terminal(stdscr, timeout_ms=100):
    """Apply core curses terminal setup."""
    try:
        curses.curs_set(0)
    except curses.error:
        pass
    curses.noecho()
    curses.cbreak()
    stdscr.keypad(True)
    stdscr.nodelay(False)
    stdscr.timeout(timeout_ms)
