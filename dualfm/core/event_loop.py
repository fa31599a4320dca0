"""Main loop helpers for DualFM."""

import curses


def draw_frame(app):
    """Render a full frame before reading input."""
    app.stdscr.erase()
    app.draw()
    app.stdscr.noutrefresh()
    curses.doupdate()


def read_input_key(stdscr):
    """Read one key from curses, returning None on timeout/no input."""
    try:
        return stdscr.get_wch()
    except curses.error:
        return None


def dispatch_input(app, key):
    """Dispatch one input event."""
    if key is None:
        return

    if isinstance(key, int) and key == curses.KEY_RESIZE:
        curses.update_lines_cols()
        return

    app.handle_key(key)


def run_app_loop(app):
    """Run main draw/input loop with cleanup on exit."""
    poll_background = getattr(app, 'poll_background_operation', None)
    try:
        while app.running:
            if callable(poll_background):
                poll_background()
            draw_frame(app)
            key = read_input_key(app.stdscr)
            dispatch_input(app, key)
            if callable(poll_background):
                poll_background()
    finally:
        app.cleanup()
