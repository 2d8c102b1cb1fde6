"""Row-level query helpers, mutation builders and implicit transactions.

Typical use::

    sql = get_sql()
    sql.set_db_connection(Database(path))

    @sql.scoped
    def move_note(note_id, parent_id):
        sql.execute("DELETE FROM branches WHERE noteId = ?", [note_id])
        sql.insert("branches", {"noteId": note_id, "parentNoteId": parent_id})

Writes issued anywhere below the outermost ``scoped``/``transactional`` call
share one physical transaction.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, TypeVar, Union

from scopedsql.db.chunked import PARAM_LIMIT, execute_chunked
from scopedsql.db.database import Params, RunResult
from scopedsql.db.instrument import SLOW_QUERY_MS, run_wrapped
from scopedsql.db.statement_cache import StatementCache
from scopedsql.db.transaction import Notifier, ScopeState, TransactionCoordinator

logger = logging.getLogger(__name__)

T = TypeVar("T")

Record = Union[Mapping[str, Any], Iterable[tuple[str, Any]]]


def _as_pairs(record: Record) -> list[tuple[str, Any]]:
    if isinstance(record, Mapping):
        return list(record.items())
    return [(column, value) for column, value in record]


def _normalise(value: Any) -> Any:
    # SQLite has no boolean type
    if isinstance(value, bool):
        return 1 if value else 0
    return value


class SqlClient:
    """Owns the process' single connection and everything built on it."""

    def __init__(
        self,
        connection: Optional[Any] = None,
        notifier: Optional[Notifier] = None,
        slow_query_ms: int = SLOW_QUERY_MS,
        param_limit: int = PARAM_LIMIT,
    ):
        self._conn: Optional[Any] = None
        self.slow_query_ms = slow_query_ms
        self.param_limit = param_limit
        self._statements = StatementCache(lambda: self._conn)
        self._coordinator = TransactionCoordinator(
            begin=lambda: self._run_verb("BEGIN"),
            commit=lambda: self._run_verb("COMMIT"),
            rollback=lambda: self._run_verb("ROLLBACK"),
            notifier=notifier,
        )
        if connection is not None:
            self.set_db_connection(connection)

    # -- connection ------------------------------------------------------------

    def set_db_connection(self, connection: Any) -> None:
        self._statements.clear()
        self._conn = connection

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def notifier(self) -> Optional[Notifier]:
        return self._coordinator.notifier

    @notifier.setter
    def notifier(self, notifier: Optional[Notifier]) -> None:
        self._coordinator.notifier = notifier

    def close(self) -> None:
        """Close the connection once; later calls do nothing."""
        conn, self._conn = self._conn, None
        self._statements.clear()
        if conn is not None:
            conn.close()

    def stmt(self, query: str) -> Any:
        return self._statements.prepare(query)

    # -- reads -----------------------------------------------------------------

    def get_row(self, query: str, params: Params = None) -> Optional[dict[str, Any]]:
        return self._wrap(lambda conn: self.stmt(query).get(params), query)

    def get_row_or_null(self, query: str, params: Params = None) -> Optional[dict[str, Any]]:
        rows = self.get_rows(query, params)
        return rows[0] if rows else None

    def get_value(self, query: str, params: Params = None) -> Any:
        """First column of the first row, or ``None``."""
        row = self.get_row_or_null(query, params)
        if not row:
            return None
        return next(iter(row.values()))

    def get_rows(self, query: str, params: Params = None) -> list[dict[str, Any]]:
        return self._wrap(lambda conn: self.stmt(query).all(params), query)

    def get_many_rows(self, query: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        """Like :meth:`get_rows` for queries with a ``???`` marker and any number of values."""
        return execute_chunked(self.get_rows, query, params, self.param_limit)

    def get_map(self, query: str, params: Params = None) -> dict[Any, Any]:
        """Map the first column of each row onto the second. The query must select two columns."""
        result = {}
        for row in self.get_rows(query, params):
            values = list(row.values())
            if len(values) < 2:
                raise ValueError(f"get_map needs two result columns, got {len(values)}: {query}")
            result[values[0]] = values[1]
        return result

    def get_column(self, query: str, params: Params = None) -> list[Any]:
        return [next(iter(row.values())) for row in self.get_rows(query, params)]

    # -- writes ----------------------------------------------------------------

    def execute(self, query: str, params: Params = None) -> RunResult:
        self._coordinator.begin_if_necessary()
        return self._wrap(lambda conn: self.stmt(query).run(params), query)

    def execute_without_transaction(self, query: str, params: Params = None) -> RunResult:
        """Run outside scope tracking and the statement cache (e.g. ``VACUUM``)."""
        return self._wrap(lambda conn: conn.prepare(query).run(params), query)

    def execute_many(self, query: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        if not params:
            return []
        self._coordinator.begin_if_necessary()
        return self.get_many_rows(query, params)

    def execute_script(self, script: str) -> None:
        self._coordinator.begin_if_necessary()
        self._wrap(lambda conn: conn.exec_script(script), script)

    # -- mutations -------------------------------------------------------------

    def insert(self, table: str, record: Record, replace: bool = False) -> Optional[int]:
        """Insert ``record`` and return the new rowid; empty records are skipped."""
        pairs = _as_pairs(record)
        if not pairs:
            logger.error(f"Can't insert empty object into table {table}")
            return None

        columns = ", ".join(column for column, _ in pairs)
        marks = ", ".join("?" for _ in pairs)
        verb = "INSERT OR REPLACE" if replace else "INSERT"
        query = f"{verb} INTO {table}({columns}) VALUES ({marks})"

        return self.execute(query, [value for _, value in pairs]).last_insert_rowid

    def replace(self, table: str, record: Record) -> Optional[int]:
        return self.insert(table, record, replace=True)

    def upsert(self, table: str, primary_key: str, record: Record) -> None:
        """Insert or update on ``primary_key`` conflict. ``record`` itself is not modified.

        Nothing is returned: after the update branch the connection's last
        insert rowid belongs to an earlier insert, possibly into another table.
        """
        pairs = _as_pairs(record)
        if not pairs:
            logger.error(f"Can't upsert empty object into table {table}")
            return

        columns = ", ".join(column for column, _ in pairs)
        marks = ", ".join(f":{column}" for column, _ in pairs)
        updates = ", ".join(f"{column} = :{column}" for column, _ in pairs)
        query = (
            f"INSERT INTO {table} ({columns}) VALUES ({marks}) "
            f"ON CONFLICT ({primary_key}) DO UPDATE SET {updates}"
        )
        params = {column: _normalise(value) for column, value in pairs}

        self.execute(query, params)

    # -- transactions ----------------------------------------------------------

    def transactional(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return self._coordinator.transactional(func, *args, **kwargs)

    def scoped(self, func: Callable[..., T]) -> Callable[..., T]:
        return self._coordinator.scoped(func)

    def transaction(self) -> AbstractContextManager[ScopeState]:
        return self._coordinator.transaction()

    def current_scope(self) -> Optional[ScopeState]:
        return self._coordinator.current_scope()

    def is_transactional(self) -> bool:
        return self._coordinator.is_transactional()

    def is_in_transaction(self) -> bool:
        return self._coordinator.is_in_transaction()

    # -- internal --------------------------------------------------------------

    def _run_verb(self, verb: str) -> RunResult:
        return self._wrap(lambda conn: self.stmt(verb).run(), verb)

    def _wrap(self, func: Callable[[Any], T], query: str) -> T:
        return run_wrapped(func, query, self._conn, self.slow_query_ms)


# -- module singleton ----------------------------------------------------------

_default_sql: Optional[SqlClient] = None


def get_sql() -> SqlClient:
    """Return (and lazily create) the process-wide client. The connection is injected separately."""
    global _default_sql
    if _default_sql is None:
        from scopedsql.config import get_store_config
        cfg = get_store_config()
        _default_sql = SqlClient(slow_query_ms=cfg.slow_query_ms, param_limit=cfg.param_limit)
    return _default_sql


def reset_sql() -> None:
    """Close and discard the singleton (useful in tests)."""
    global _default_sql
    if _default_sql is not None:
        _default_sql.close()
        _default_sql = None
