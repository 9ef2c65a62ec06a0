"""
Threading primitives for the search coordinator.

- SerialQueue: a daemon thread that runs submitted callables one at a time,
  in submission order. The coordinator uses one as its background worker
  (scans and replaces) and one as its publishing context (all state changes
  and observer callbacks).
- WorkTracker: counts jobs handed between contexts, so a caller can wait
  for a scan or replace chain to settle as a whole.
- Debouncer: a restartable timer. Every trigger() pushes the deadline out;
  when it finally fires, the callback is posted onto a context (anything
  with submit(fn, *args)).
"""

import logging
import queue
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_STOP = object()


class SerialQueue:
    """Runs jobs sequentially on one dedicated daemon thread."""

    def __init__(self, name: str):
        self.name = name
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._pending = 0
        self._cond = threading.Condition()
        self._closed = False
        self._thread = threading.Thread(target=self._run, daemon=True, name=name)
        self._thread.start()

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        """Queue fn(*args). Returns False once the queue has been closed."""
        with self._cond:
            if self._closed:
                logger.debug("%s is closed, dropping %s", self.name, getattr(fn, "__name__", fn))
                return False
            self._pending += 1
        self._queue.put((fn, args))
        return True

    def is_current(self) -> bool:
        """True when called from this queue's own thread."""
        return threading.current_thread() is self._thread

    @property
    def idle(self) -> bool:
        with self._cond:
            return self._pending == 0

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted job has finished. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending == 0, timeout=timeout)

    def close(self, wait: bool = False, timeout: Optional[float] = None):
        """Stop accepting jobs; queued jobs still run before the thread exits."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
        self._queue.put(_STOP)
        if wait and not self.is_current():
            self._thread.join(timeout=timeout)

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            fn, args = item
            try:
                fn(*args)
            except Exception:
                logger.exception("Job %s failed on %s", getattr(fn, "__name__", fn), self.name)
            finally:
                with self._cond:
                    self._pending -= 1
                    self._cond.notify_all()


class WorkTracker:
    """
    Counts jobs handed to any set of contexts until they have finished.

    A job that hands off follow-up work does so while it is still counted,
    so the count only reaches zero once the whole chain has run.
    """

    def __init__(self):
        self._outstanding = 0
        self._cond = threading.Condition()

    @property
    def outstanding(self) -> int:
        with self._cond:
            return self._outstanding

    def post(self, context: Any, fn: Callable[..., Any], *args: Any) -> bool:
        """Submit fn(*args) to context, counted until it returns."""
        with self._cond:
            self._outstanding += 1

        def _counted():
            try:
                fn(*args)
            finally:
                self._finish()

        try:
            accepted = context.submit(_counted)
        except RuntimeError as e:
            # e.g. an executor that has been shut down
            logger.debug("Context %r rejected %s: %s", context, getattr(fn, "__name__", fn), e)
            accepted = False
        if accepted is False:
            self._finish()
            return False
        return True

    def wrap(self, context: Any) -> "TrackedContext":
        return TrackedContext(self, context)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is outstanding. False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def _finish(self):
        with self._cond:
            self._outstanding -= 1
            self._cond.notify_all()


class TrackedContext:
    """A context whose submit() goes through a WorkTracker."""

    def __init__(self, tracker: WorkTracker, context: Any):
        self._tracker = tracker
        self._context = context

    def submit(self, fn: Callable[..., Any], *args: Any) -> bool:
        return self._tracker.post(self._context, fn, *args)


class Debouncer:
    """
    Restartable one-shot timer.

    Each trigger() cancels the previous timer. Only the last trigger in a
    burst fires, after `delay` seconds of quiet, and its callback runs on
    `context` rather than on the timer thread.
    """

    def __init__(self, delay: float, callback: Callable[[], Any], context: Any):
        self.delay = delay
        self._callback = callback
        self._context = context
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._token = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self):
        with self._lock:
            self._token += 1
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.delay, self._fire, args=(self._token,))
            timer.daemon = True
            timer.name = "scour-debounce"
            self._timer = timer
            timer.start()

    def cancel(self):
        with self._lock:
            self._token += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, token: int):
        with self._lock:
            if token != self._token:
                return
            self._context.submit(self._run, token)
            self._timer = None

    def _run(self, token: int):
        with self._lock:
            if token != self._token:
                return  # cancelled after the timer fired
        self._callback()
