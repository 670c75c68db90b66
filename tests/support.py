"""Test doubles and scripted query sequences shared by the test modules."""

from __future__ import annotations

from collections import deque
from pathlib import Path

from pgpulse.queries import (
    query_checkpoints,
    query_database_conflicts,
    query_database_list,
    query_database_locks,
    query_database_stats,
    query_server_current_connections,
    query_server_version,
    query_settings_max_connections,
)
from pgpulse.query import QueryExecutionError, QueryResult

TESTDATA = Path(__file__).parent / "testdata"


def load_result(name: str, version: str = "v14.4") -> QueryResult:
    """Parse a psql table dump (``col | col`` header, ``---`` rule) into a result."""

    return parse_table((TESTDATA / version / name).read_text())


def parse_table(text: str) -> QueryResult:
    columns: tuple[str, ...] = ()
    rows: list[tuple[object, ...]] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("---"):
            continue
        parts = tuple(part.strip() for part in stripped.split("|"))
        if not columns:
            columns = parts
            continue
        if len(parts) != len(columns):
            raise ValueError(f"columns != values ({len(columns)}/{len(parts)})")
        rows.append(parts)
    if not columns:
        raise ValueError("empty result table")
    return QueryResult(columns=columns, rows=tuple(rows))


class FakeExecutor:
    """Executor replaying scripted results in order, like a query mock."""

    def __init__(self, *, connected: bool = True) -> None:
        self._connected = connected
        self._expected: deque[tuple[str, QueryResult | BaseException]] = deque()
        self.calls: list[tuple[str, tuple[object, ...]]] = []
        self.connects = 0
        self.closed = False
        self.connect_error: BaseException | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        self._connected = False

    async def connect(self) -> None:
        self.connects += 1
        if self.connect_error is not None:
            raise self.connect_error
        self._connected = True

    async def execute(self, sql: str, *args: object, timeout: float) -> QueryResult:
        assert timeout > 0
        if not self._expected:
            raise AssertionError(f"unexpected query: {sql!r}")
        expected_sql, outcome = self._expected.popleft()
        assert sql == expected_sql, f"expected {expected_sql!r}, got {sql!r}"
        self.calls.append((sql, args))
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def close(self) -> None:
        self.closed = True
        self._connected = False

    def expect(self, sql: str, result: QueryResult | str) -> None:
        if isinstance(result, str):
            result = load_result(result)
        self._expected.append((sql, result))

    def expect_error(self, sql: str, error: BaseException | None = None) -> None:
        self._expected.append((sql, error or QueryExecutionError("mock error")))

    def expectations_were_met(self) -> bool:
        return not self._expected


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


V14 = 140004


def expect_metadata(m: FakeExecutor, databases: str = "database_list-2db.txt") -> None:
    m.expect(query_server_version(), "server_version_num.txt")
    m.expect(query_settings_max_connections(), "settings_max_connections.txt")
    m.expect(query_database_list(), databases)


def expect_collection(m: FakeExecutor, version: int = V14) -> None:
    m.expect(query_server_current_connections(), "server_current_connections.txt")
    m.expect(query_checkpoints(version), "checkpoints.txt")
    m.expect(query_database_stats(), "database_stats.txt")
    m.expect(query_database_conflicts(), "database_conflicts.txt")
    m.expect(query_database_locks(), "database_locks.txt")


EXPECTED_TWO_DATABASES = {
    "buffers_alloc": 27295744,
    "buffers_backend": 0,
    "buffers_backend_fsync": 0,
    "buffers_checkpoint": 32768,
    "buffers_clean": 0,
    "checkpoint_sync_time": 47,
    "checkpoint_write_time": 167,
    "checkpoints_req": 16,
    "checkpoints_timed": 1814,
    "db_postgres_blks_hit": 1221125,
    "db_postgres_blks_read": 3252,
    "db_postgres_confl_bufferpin": 0,
    "db_postgres_confl_deadlock": 0,
    "db_postgres_confl_lock": 0,
    "db_postgres_confl_snapshot": 0,
    "db_postgres_confl_tablespace": 0,
    "db_postgres_conflicts": 0,
    "db_postgres_deadlocks": 0,
    "db_postgres_lock_mode_AccessExclusiveLock_awaited": 0,
    "db_postgres_lock_mode_AccessExclusiveLock_held": 0,
    "db_postgres_lock_mode_AccessShareLock_awaited": 0,
    "db_postgres_lock_mode_AccessShareLock_held": 1,
    "db_postgres_lock_mode_ExclusiveLock_awaited": 0,
    "db_postgres_lock_mode_ExclusiveLock_held": 0,
    "db_postgres_lock_mode_RowExclusiveLock_awaited": 0,
    "db_postgres_lock_mode_RowExclusiveLock_held": 1,
    "db_postgres_lock_mode_RowShareLock_awaited": 0,
    "db_postgres_lock_mode_RowShareLock_held": 1,
    "db_postgres_lock_mode_ShareLock_awaited": 0,
    "db_postgres_lock_mode_ShareLock_held": 0,
    "db_postgres_lock_mode_ShareRowExclusiveLock_awaited": 0,
    "db_postgres_lock_mode_ShareRowExclusiveLock_held": 0,
    "db_postgres_lock_mode_ShareUpdateExclusiveLock_awaited": 0,
    "db_postgres_lock_mode_ShareUpdateExclusiveLock_held": 0,
    "db_postgres_numbackends": 3,
    "db_postgres_numbackends_utilization": 10,
    "db_postgres_size": 8758051,
    "db_postgres_temp_bytes": 0,
    "db_postgres_temp_files": 0,
    "db_postgres_tup_deleted": 0,
    "db_postgres_tup_fetched": 359833,
    "db_postgres_tup_inserted": 0,
    "db_postgres_tup_returned": 13207245,
    "db_postgres_tup_updated": 0,
    "db_postgres_xact_commit": 1438660,
    "db_postgres_xact_rollback": 70,
    "db_production_blks_hit": 0,
    "db_production_blks_read": 0,
    "db_production_confl_bufferpin": 0,
    "db_production_confl_deadlock": 0,
    "db_production_confl_lock": 0,
    "db_production_confl_snapshot": 0,
    "db_production_confl_tablespace": 0,
    "db_production_conflicts": 0,
    "db_production_deadlocks": 0,
    "db_production_lock_mode_AccessExclusiveLock_awaited": 0,
    "db_production_lock_mode_AccessExclusiveLock_held": 0,
    "db_production_lock_mode_AccessShareLock_awaited": 0,
    "db_production_lock_mode_AccessShareLock_held": 0,
    "db_production_lock_mode_ExclusiveLock_awaited": 0,
    "db_production_lock_mode_ExclusiveLock_held": 0,
    "db_production_lock_mode_RowExclusiveLock_awaited": 0,
    "db_production_lock_mode_RowExclusiveLock_held": 0,
    "db_production_lock_mode_RowShareLock_awaited": 0,
    "db_production_lock_mode_RowShareLock_held": 0,
    "db_production_lock_mode_ShareLock_awaited": 0,
    "db_production_lock_mode_ShareLock_held": 1,
    "db_production_lock_mode_ShareRowExclusiveLock_awaited": 0,
    "db_production_lock_mode_ShareRowExclusiveLock_held": 0,
    "db_production_lock_mode_ShareUpdateExclusiveLock_awaited": 0,
    "db_production_lock_mode_ShareUpdateExclusiveLock_held": 1,
    "db_production_numbackends": 1,
    "db_production_numbackends_utilization": 1,
    "db_production_size": 8602115,
    "db_production_temp_bytes": 0,
    "db_production_temp_files": 0,
    "db_production_tup_deleted": 0,
    "db_production_tup_fetched": 0,
    "db_production_tup_inserted": 0,
    "db_production_tup_returned": 0,
    "db_production_tup_updated": 0,
    "db_production_xact_commit": 0,
    "db_production_xact_rollback": 0,
    "maxwritten_clean": 0,
    "server_connections_available": 97,
    "server_connections_used": 3,
    "server_connections_utilization": 3,
}
