"""Splitting of oversized parameter lists into engine-safe batches.

SQLite refuses statements binding more than 999 parameters. Queries that
take an arbitrary list of values write ``???`` where the comma-joined
placeholders belong, e.g. ``SELECT * FROM notes WHERE noteId IN (???)``.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Mapping, Sequence

ENGINE_PARAM_CAP = 999
PARAM_LIMIT = 900  # headroom for other parameters in the same statement
CHUNK_MARKER = "???"

Runner = Callable[[str, Mapping[str, Any]], Sequence[Any]]


def iter_batches(params: Sequence[Any], limit: int = PARAM_LIMIT) -> Iterator[Sequence[Any]]:
    if not 0 < limit < ENGINE_PARAM_CAP:
        raise ValueError(f"limit must be between 1 and {ENGINE_PARAM_CAP - 1}, got {limit}")
    for start in range(0, len(params), limit):
        yield params[start:start + limit]


def expand_marker(query: str, batch: Sequence[Any]) -> tuple[str, dict[str, Any]]:
    """Replace the chunk marker with ``:param1,...,:paramN`` and bind the batch by name."""
    named = {f"param{i}": value for i, value in enumerate(batch, start=1)}
    placeholders = ",".join(f":{name}" for name in named)
    return query.replace(CHUNK_MARKER, placeholders), named


def execute_chunked(
    runner: Runner,
    query: str,
    params: Sequence[Any],
    limit: int = PARAM_LIMIT,
) -> list[Any]:
    """Run ``query`` once per batch and concatenate the rows in batch order."""
    results: list[Any] = []
    for batch in iter_batches(list(params), limit):
        batch_query, named = expand_marker(query, batch)
        results.extend(runner(batch_query, named))
    return results
