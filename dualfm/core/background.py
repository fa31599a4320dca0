"""
Run one engine call on a worker thread and let the UI loop poll it.
"""
import logging
import threading
import time

from .cancellation import CancellationToken, is_cancelled
from .models import CollisionAction, CollisionDecision, OperationResult

LOGGER = logging.getLogger(__name__)


class CollisionPrompt:
    """``on_collision`` callable that parks the worker until the UI answers.

    The worker thread calls the prompt with the colliding destination and
    blocks; the UI thread sees ``pending_path`` while polling, asks the user
    and calls ``answer``. A cancelled token resolves the wait with CANCEL.
    """

    WAIT_SLICE = 0.1

    def __init__(self, token=None):
        self.token = token
        self._cond = threading.Condition()
        self._pending = None
        self._decision = None

    @property
    def pending_path(self):
        with self._cond:
            return self._pending

    def __call__(self, dest_path):
        with self._cond:
            self._pending = dest_path
            self._decision = None
            while self._decision is None:
                if is_cancelled(self.token):
                    self._decision = CollisionDecision(CollisionAction.CANCEL)
                    break
                self._cond.wait(self.WAIT_SLICE)
            decision = self._decision
            self._pending = None
            self._decision = None
        return decision

    def answer(self, decision):
        if not isinstance(decision, CollisionDecision):
            decision = CollisionDecision(CollisionAction(decision))
        with self._cond:
            if self._pending is None:
                LOGGER.debug('Ignoring collision answer with no pending question')
                return
            self._decision = decision
            self._pending = None
            self._cond.notify_all()


class BackgroundOperation:
    """One blocking engine call running on its own thread.

    ``worker(op)`` receives this object and should pass ``op.token``,
    ``op.report`` and, for copy/move, ``op.prompt`` to the engine. Its return
    value (normally an ``OperationResult``) becomes ``result``.
    """

    JOIN_TIMEOUT = 5.0

    def __init__(self, worker, title):
        self.worker = worker
        self.title = title
        self.token = CancellationToken()
        self.prompt = CollisionPrompt(self.token)
        self.result = None
        self.started_at = None
        self.thread = None
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._progress = None

    def _runner(self):
        try:
            self.result = self.worker(self)
        except Exception as exc:
            LOGGER.error('%s failed', self.title, exc_info=True)
            self.result = OperationResult.failure(f'{self.title} failed: {exc}', errors=(str(exc),))
        finally:
            self._done.set()

    def start(self):
        self.started_at = time.monotonic()
        self.thread = threading.Thread(target=self._runner, name='dualfm-file-op', daemon=False)
        LOGGER.debug('Starting background operation: %s', self.title)
        self.thread.start()
        return self

    def report(self, event):
        """Progress callback handed to the engine (runs on the worker)."""
        with self._lock:
            self._progress = event

    @property
    def progress(self):
        with self._lock:
            return self._progress

    @property
    def done(self):
        return self._done.is_set()

    @property
    def elapsed(self):
        if self.started_at is None:
            return 0.0
        return max(0.0, time.monotonic() - self.started_at)

    def cancel(self):
        self.token.cancel()

    def poll(self):
        """Return the result once the worker has finished, else None."""
        if not self._done.is_set():
            return None
        if self.thread is not None:
            self.thread.join(self.JOIN_TIMEOUT)
        return self.result

    def wait(self, timeout=None):
        self._done.wait(timeout)
        return self.poll()
