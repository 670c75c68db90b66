"""Query execution against the collector's single persistent session."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

import asyncpg

from .connections import ConnectionBackendError, close_quietly, open_connection
from .models import ConnectionProfile

# Errors meaning the session itself is gone, not just the statement.
_CONNECTION_LOST_ERRORS: tuple[type[BaseException], ...] = (
    asyncpg.exceptions.ConnectionDoesNotExistError,
    asyncpg.exceptions.InterfaceError,
    ConnectionError,
)


class QueryExecutionError(RuntimeError):
    """Raised when a query fails or exceeds its deadline."""


@dataclass(frozen=True, slots=True)
class QueryResult:
    """Normalized query output handed to the flattener."""

    columns: tuple[str, ...]
    rows: tuple[tuple[object, ...], ...]
    elapsed_ms: int = 0

    @property
    def row_count(self) -> int:
        return len(self.rows)


class QueryExecutor(Protocol):
    """Interface implemented by query executors."""

    @property
    def connected(self) -> bool: ...

    async def connect(self) -> None: ...

    async def execute(self, sql: str, *args: object, timeout: float) -> QueryResult: ...

    async def close(self) -> None: ...


class AsyncpgQueryExecutor:
    """Runs statements on one long-lived asyncpg connection."""

    def __init__(self, profile: ConnectionProfile, *, connect_timeout: float = 2.0) -> None:
        self._profile = profile
        self._connect_timeout = connect_timeout
        self._conn: Any | None = None

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._conn.is_closed()

    async def connect(self) -> None:
        if self._conn is not None:
            await self._drop()
        self._conn = await open_connection(self._profile, timeout=self._connect_timeout)

    async def execute(self, sql: str, *args: object, timeout: float) -> QueryResult:
        if not self.connected:
            raise ConnectionBackendError(f"No open session to '{self._profile.describe()}'")
        started = time.perf_counter()
        try:
            records = await self._conn.fetch(sql, *args, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise QueryExecutionError(f"Query timed out after {timeout:g}s") from exc
        except _CONNECTION_LOST_ERRORS as exc:
            await self._drop()
            raise ConnectionBackendError(f"Lost connection to '{self._profile.describe()}': {exc}") from exc
        except Exception as exc:
            raise QueryExecutionError(str(exc)) from exc
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        columns, rows = _records_to_rows(records)
        return QueryResult(columns=columns, rows=rows, elapsed_ms=elapsed_ms)

    async def close(self) -> None:
        await self._drop()

    async def _drop(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            await close_quietly(conn)


def _records_to_rows(records: Iterable[Any]) -> tuple[tuple[str, ...], tuple[tuple[object, ...], ...]]:
    rows: list[tuple[object, ...]] = []
    columns: tuple[str, ...] = ()
    for record in records:
        if not columns:
            columns = tuple(str(key) for key in record.keys())
        rows.append(tuple(record[key] for key in columns))
    return columns, tuple(rows)


__all__ = [
    "AsyncpgQueryExecutor",
    "QueryExecutionError",
    "QueryExecutor",
    "QueryResult",
]
