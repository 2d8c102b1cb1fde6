"""Database layer: statement cache, chunked queries and scoped transactions."""

from scopedsql.db.database import Database, PreparedStatement, RunResult
from scopedsql.db.errors import ConnectionNotInitialized, EngineExecutionError, SqlError
from scopedsql.db.sql import SqlClient, get_sql, reset_sql

__all__ = [
    "Database",
    "PreparedStatement",
    "RunResult",
    "SqlClient",
    "get_sql",
    "reset_sql",
    "SqlError",
    "ConnectionNotInitialized",
    "EngineExecutionError",
]
