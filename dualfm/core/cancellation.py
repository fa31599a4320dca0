"""Cooperative cancellation shared between the UI and worker threads."""
import threading


class CancellationToken:
    """Flag checked by operations at file boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self):
        return self._event.is_set()

    def wait(self, timeout=None):
        """Block until cancelled or ``timeout`` elapses; return the flag."""
        return self._event.wait(timeout)


def is_cancelled(token):
    """Treat a missing token as never cancelled."""
    return token is not None and token.is_cancelled
