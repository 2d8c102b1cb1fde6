"""Memoized prepared statements keyed by exact query text."""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from scopedsql.db.errors import ConnectionNotInitialized


class StatementCache:
    """
    One prepared handle per distinct query string, kept until ``clear()``.

    The key is the raw text, so queries differing only in whitespace get
    separate handles. First-time compilation is serialized by a lock.
    """

    def __init__(self, connection_getter: Callable[[], Optional[Any]]):
        self._get_connection = connection_getter
        self._handles: dict[str, Any] = {}
        self._lock = threading.Lock()

    def prepare(self, text: str) -> Any:
        conn = self._get_connection()
        if conn is None:
            raise ConnectionNotInitialized()

        handle = self._handles.get(text)
        if handle is not None:
            return handle

        with self._lock:
            handle = self._handles.get(text)
            if handle is None:
                handle = conn.prepare(text)
                self._handles[text] = handle
        return handle

    def clear(self) -> None:
        with self._lock:
            self._handles.clear()

    def __contains__(self, text: object) -> bool:
        return text in self._handles

    def __len__(self) -> int:
        return len(self._handles)
