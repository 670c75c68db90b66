"""Helpers turning tabular query results into flat name/value assignments."""

from __future__ import annotations

import re
from typing import Callable

from .query import QueryExecutor, QueryResult

AssignCallback = Callable[[str, str], None]

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def collect_rows(result: QueryResult, assign: AssignCallback | None) -> None:
    """Invoke ``assign(column, value)`` for every cell of every row.

    Values are handed over as text: ``None`` becomes an empty string and
    booleans are spelled ``true``/``false``. Column names are passed through
    untouched; any scoping of the resulting series names belongs to the
    callback.
    """

    if assign is None:
        return
    columns = result.columns
    for row in result.rows:
        for column, value in zip(columns, row):
            assign(column, value_to_text(value))


async def query_rows(
    executor: QueryExecutor,
    sql: str,
    *args: object,
    timeout: float,
    assign: AssignCallback | None,
) -> None:
    """Run ``sql`` and flatten its rows through ``assign``."""

    result = await executor.execute(sql, *args, timeout=timeout)
    collect_rows(result, assign)


def value_to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def safe_parse_int(value: str) -> int:
    """Parse a base-10 signed 64-bit integer, returning 0 on any failure.

    Malformed text silently becomes zero so a single odd value never aborts
    a collection cycle.
    """

    if not _INT_RE.fullmatch(value):
        return 0
    parsed = int(value)
    if parsed < _INT64_MIN or parsed > _INT64_MAX:
        return 0
    return parsed


def calc_percentage(value: int, total: int) -> int:
    if total == 0:
        return 0
    return value * 100 // total


__all__ = [
    "AssignCallback",
    "calc_percentage",
    "collect_rows",
    "query_rows",
    "safe_parse_int",
    "value_to_text",
]
