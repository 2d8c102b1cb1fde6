"""Close the store when the process exits or receives a termination signal.

Closing is what folds the ``-wal`` file back into the main database file.
"""

from __future__ import annotations

import atexit
import logging
import signal
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = ("SIGINT", "SIGUSR1", "SIGUSR2", "SIGTERM")


class _Once:
    def __init__(self, func: Callable[[], Any]):
        self._func = func
        self._done = False
        self._lock = threading.Lock()

    def __call__(self) -> None:
        with self._lock:
            if self._done:
                return
            self._done = True
        try:
            self._func()
        except Exception:
            logger.exception("Error while closing the database on shutdown")

    @property
    def done(self) -> bool:
        return self._done


def register_shutdown(close: Callable[[], Any]) -> Callable[[], None]:
    """Run ``close`` once on normal exit or on any shutdown signal.

    Returns the guarded callable so callers can also trigger it directly.
    """
    once = _Once(close)
    atexit.register(once)

    if threading.current_thread() is not threading.main_thread():
        logger.warning("Signal handlers can only be installed from the main thread; using atexit only")
        return once

    for name in SHUTDOWN_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous = signal.getsignal(signum)
        signal.signal(signum, _make_handler(once, previous))

    return once


def _make_handler(once: _Once, previous: Any) -> Callable[[int, Any], None]:
    def handler(signum: int, frame: Any) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, closing database")
        once()
        if callable(previous):
            previous(signum, frame)
        elif previous == signal.SIG_DFL:
            raise SystemExit(128 + signum)
    return handler
