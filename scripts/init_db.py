#!/usr/bin/env python3
"""Initialize the database and optionally apply a schema script."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from scopedsql.config import configure_logging, get_store_config
from scopedsql.db.database import Database
from scopedsql.db.sql import SqlClient


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the database")
    parser.add_argument("--db-path", type=str, help="Override database path")
    parser.add_argument("--schema", type=str, help="SQL file to execute in one transaction")
    args = parser.parse_args(argv)

    cfg = get_store_config()
    configure_logging(cfg.log_level)

    db_path = Path(args.db_path) if args.db_path else cfg.db_path
    sql = SqlClient(Database(path=db_path), slow_query_ms=cfg.slow_query_ms)
    try:
        if args.schema:
            script = Path(args.schema).read_text(encoding="utf-8")
            sql.transactional(sql.execute_script, script)
            print(f"Applied schema from: {args.schema}")
        tables = sql.get_column(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        )
        print(f"Database initialized at: {db_path}")
        print(f"Tables: {', '.join(tables) if tables else '(none)'}")
    finally:
        sql.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
