"""Timing and error wrapping around every statement execution."""

from __future__ import annotations

import logging
import os
import time
import traceback
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from scopedsql.db.errors import ConnectionNotInitialized, EngineExecutionError, SqlError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOW_QUERY_MS = 300

_PACKAGE_DIR = str(Path(__file__).resolve().parents[1]) + os.sep


def find_caller() -> Optional[str]:
    """``file:line in func`` of the innermost frame outside this package."""
    for frame in reversed(traceback.extract_stack()):
        filename = str(Path(frame.filename).resolve())
        if not filename.startswith(_PACKAGE_DIR):
            return f"{frame.filename}:{frame.lineno} in {frame.name}"
    return None


def run_wrapped(
    func: Callable[[Any], T],
    query: str,
    connection: Optional[Any],
    slow_query_ms: int = SLOW_QUERY_MS,
) -> T:
    if connection is None:
        raise ConnectionNotInitialized()

    try:
        start = time.perf_counter()
        result = func(connection)
        elapsed_ms = int((time.perf_counter() - start) * 1000)
    except SqlError:
        raise
    except Exception as e:
        caller = find_caller()
        logger.error(
            f"Error executing query (called from {caller}): {query}",
            exc_info=True,
        )
        raise EngineExecutionError(query, e, caller=caller) from e

    if elapsed_ms >= slow_query_ms:
        if "WITH RECURSIVE" in query:
            logger.warning(f"Slow recursive query took {elapsed_ms}ms.")
        else:
            logger.warning(f"Slow query took {elapsed_ms}ms: {query}")
    return result
