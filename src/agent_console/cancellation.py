"""Propagating cancellation tokens shared by producer threads.

A token is canceled at most once. Children derived with :meth:`CancelToken.child`
are canceled together with their parent, and callbacks registered with
:meth:`CancelToken.add_callback` run exactly once when the token flips, which is
how blocked waits (process polling, streaming HTTP reads) get unblocked.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative, idempotent cancellation signal."""

    def __init__(self, parent: CancelToken | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._timer: threading.Timer | None = None
        self.reason: str | None = None
        self.deadline: float | None = parent.deadline if parent is not None else None
        if parent is not None:
            parent.add_callback(lambda: self.cancel(reason=parent.reason))

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def child(self) -> CancelToken:
        """Derive a token that is canceled whenever this one is."""

        return CancelToken(parent=self)

    def with_timeout(self, seconds: float) -> CancelToken:
        """Derive a child token that cancels itself after ``seconds``."""

        token = self.child()
        deadline = time.monotonic() + seconds
        if token.deadline is None or deadline < token.deadline:
            token.deadline = deadline
        timer = threading.Timer(seconds, token.cancel, kwargs={"reason": "timeout"})
        timer.daemon = True
        token._timer = timer
        timer.start()
        return token

    def cancel(self, *, reason: str | None = "canceled") -> bool:
        """Cancel the token. Returns ``True`` only for the call that flipped it."""

        with self._lock:
            if self._event.is_set():
                return False
            self.reason = reason
            self._event.set()
            callbacks = self._callbacks
            self._callbacks = []
            timer = self._timer
            self._timer = None

        if timer is not None:
            timer.cancel()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancel callback failed")
        return True

    def release(self) -> None:
        """Drop a pending timeout timer once the guarded work finished."""

        with self._lock:
            timer = self._timer
            self._timer = None
        if timer is not None:
            timer.cancel()

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation (immediately if already canceled)."""

        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until canceled or ``timeout`` elapses; return ``cancelled``."""

        return self._event.wait(timeout)

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or ``None`` without one."""

        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())
