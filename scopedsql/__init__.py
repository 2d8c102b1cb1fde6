"""scoped-sqlite: SQLite data access with implicit, reentrant transactions."""

__version__ = "1.0.0"
