"""SQLite connection wrapper exposing prepare/run/get/all primitives."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Params = Union[Sequence[Any], Mapping[str, Any], None]


@dataclass(frozen=True)
class RunResult:
    """Outcome of a write statement."""
    changes: int
    last_insert_rowid: Optional[int]


class PreparedStatement:
    """A reusable statement bound to one connection.

    ``sqlite3`` compiles lazily and keeps its own per-connection statement
    cache, so the handle only pins the text to the connection it belongs to.
    """

    def __init__(self, conn: sqlite3.Connection, text: str):
        self._conn = conn
        self.text = text

    def run(self, params: Params = None) -> RunResult:
        cur = self._conn.execute(self.text, _bind(params))
        try:
            return RunResult(changes=cur.rowcount, last_insert_rowid=cur.lastrowid)
        finally:
            cur.close()

    def get(self, params: Params = None) -> Optional[dict[str, Any]]:
        cur = self._conn.execute(self.text, _bind(params))
        try:
            row = cur.fetchone()
            return dict(row) if row else None
        finally:
            cur.close()

    def all(self, params: Params = None) -> list[dict[str, Any]]:
        cur = self._conn.execute(self.text, _bind(params))
        try:
            return [dict(r) for r in cur.fetchall()]
        finally:
            cur.close()


def _bind(params: Params) -> Union[Sequence[Any], Mapping[str, Any]]:
    if params is None:
        return ()
    if isinstance(params, Mapping):
        return params
    return tuple(params)


class Database:
    """
    Single SQLite connection in autocommit mode.

    Transactions are demarcated with explicit ``BEGIN``/``COMMIT``/``ROLLBACK``
    statements issued by the transaction coordinator, never by the driver.
    """

    def __init__(self, path: Optional[Union[Path, str]] = None):
        if path is None:
            from scopedsql.config import get_db_path
            self.path: Path = get_db_path()
        elif isinstance(path, str):
            self.path = Path(path)
        else:
            self.path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._closed = False

    # -- connection lifecycle --------------------------------------------------

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def connection(self) -> sqlite3.Connection:
        if self._closed:
            raise sqlite3.ProgrammingError(f"Database {self.path} is closed")
        if self._conn is None:
            self._ensure_dir()
            self._conn = sqlite3.connect(
                str(self.path), check_same_thread=False, isolation_level=None
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
            logger.info(f"Opened database at {self.path}")
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None and not self._closed

    def close(self) -> None:
        """Close the connection; folds the WAL back into the main file. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info(f"Closed database at {self.path}")

    # -- engine primitives -----------------------------------------------------

    def prepare(self, text: str) -> PreparedStatement:
        return PreparedStatement(self.connection(), text)

    def exec_script(self, script: str) -> None:
        self.connection().executescript(script)

