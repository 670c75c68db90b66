"""Collection cycle orchestrator for a single PostgreSQL server."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from enum import Enum
from typing import Awaitable, Callable, Iterator

from .charts import Chart, ChartRegistry, LockMode, database_series_id, lock_metric
from .config import CollectorConfig
from .connections import ConnectionBackendError
from .flatten import calc_percentage, query_rows, safe_parse_int
from .metadata import ServerMetadata
from .models import RefreshWindow, Snapshot
from .queries import (
    query_checkpoints,
    query_database_conflicts,
    query_database_list,
    query_database_locks,
    query_database_stats,
    query_server_current_connections,
)
from .query import AsyncpgQueryExecutor, QueryExecutionError, QueryExecutor
from .registry import EntityRegistry
from .surface import MetricSurface, SeriesPublisher

LOG = logging.getLogger(__name__)

Clock = Callable[[], float]


class CycleState(str, Enum):
    """Where the current (or last) collection cycle stands."""

    IDLE = "idle"
    CONNECTION_READY = "connection_ready"
    METADATA_FRESH = "metadata_fresh"
    INVENTORY_RECONCILED = "inventory_reconciled"
    COLLECTING = "collecting"
    DONE = "done"
    FAILED = "failed"


class CollectionStep(str, Enum):
    CONNECTION = "connection"
    SERVER_VERSION = "server version"
    SETTINGS = "settings max connections"
    DATABASE_LIST = "database list"
    SERVER_CONNECTIONS = "server connections"
    CHECKPOINTS = "checkpoints"
    DATABASE_STATS = "database stats"
    DATABASE_CONFLICTS = "database conflicts"
    DATABASE_LOCKS = "database locks"


class CollectionError(RuntimeError):
    """A collection cycle failed; no snapshot was produced."""

    def __init__(self, step: CollectionStep, cause: Exception) -> None:
        action = "opening" if step is CollectionStep.CONNECTION else "querying"
        super().__init__(f"{action} {step.value} failed: {cause}")
        self.step = step
        self.cause = cause


class PostgresCollector:
    """Runs collection cycles and keeps per-database series in sync.

    One instance owns all state for one server: the session, the cached
    server metadata, the database registry and the published charts. Cycles
    must not overlap; callers await :meth:`collect` before starting the next.
    """

    def __init__(
        self,
        config: CollectorConfig | None = None,
        *,
        executor: QueryExecutor | None = None,
        publisher: SeriesPublisher | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self._config = config or CollectorConfig()
        self._executor = executor or AsyncpgQueryExecutor(
            self._config.profile.to_profile(),
            connect_timeout=self._config.timeout,
        )
        self._clock = clock
        self.charts = publisher if publisher is not None else ChartRegistry()
        self.surface = MetricSurface(self.charts)
        self.registry = EntityRegistry(self.surface)
        self.metadata = ServerMetadata(recheck_settings_every=self._config.recheck_settings_every)
        self.inventory_window = RefreshWindow(interval=self._config.relist_databases_every)
        self.state = CycleState.IDLE

    @property
    def config(self) -> CollectorConfig:
        return self._config

    @property
    def databases(self) -> tuple[str, ...]:
        return self.registry.names

    async def collect(self) -> Snapshot:
        """Run one cycle and return its snapshot.

        Raises :class:`CollectionError` naming the failed step; whatever the
        cycle had gathered before the failure is discarded.
        """

        self.state = CycleState.IDLE
        try:
            snapshot = await self._run_cycle()
        except CollectionError:
            self.state = CycleState.FAILED
            raise
        self.state = CycleState.DONE
        return snapshot

    async def check(self) -> bool:
        """Run a cycle and report whether it produced any metrics."""

        try:
            snapshot = await self.collect()
        except CollectionError as exc:
            LOG.warning("Check failed", extra={"step": exc.step.value, "error": str(exc.cause)})
            return False
        return bool(snapshot)

    async def close(self) -> None:
        await self._executor.close()

    def purge_retired(self) -> list[Chart]:
        """Drop charts retired by earlier cycles from the built-in registry."""

        if isinstance(self.charts, ChartRegistry):
            return self.charts.purge()
        return []

    async def _run_cycle(self) -> Snapshot:
        now = self._clock()
        timeout = self._config.timeout
        executor = self._executor

        with self._failing_as(CollectionStep.CONNECTION):
            if not executor.connected:
                await executor.connect()
                self.metadata.invalidate_settings()
        self.state = CycleState.CONNECTION_READY

        with self._failing_as(CollectionStep.SERVER_VERSION):
            await self.metadata.probe_server_version(executor, timeout=timeout)
        with self._failing_as(CollectionStep.SETTINGS):
            await self.metadata.refresh_settings(executor, now=now, timeout=timeout)
        self.state = CycleState.METADATA_FRESH

        if self.inventory_window.due(now):
            with self._failing_as(CollectionStep.DATABASE_LIST):
                names = await self._query_database_list()
            self.registry.reconcile(names)
            self.inventory_window.mark(now)
        self.state = CycleState.INVENTORY_RECONCILED

        self.state = CycleState.COLLECTING
        mx: Snapshot = {}
        for step, collect in self._steps():
            with self._failing_as(step):
                await collect(mx)
        return mx

    def _steps(self) -> tuple[tuple[CollectionStep, Callable[[Snapshot], Awaitable[None]]], ...]:
        return (
            (CollectionStep.SERVER_CONNECTIONS, self._collect_connections),
            (CollectionStep.CHECKPOINTS, self._collect_checkpoints),
            (CollectionStep.DATABASE_STATS, self._collect_database_stats),
            (CollectionStep.DATABASE_CONFLICTS, self._collect_database_conflicts),
            (CollectionStep.DATABASE_LOCKS, self._collect_database_locks),
        )

    @contextmanager
    def _failing_as(self, step: CollectionStep) -> Iterator[None]:
        try:
            yield
        except ConnectionBackendError as exc:
            # The session is gone; re-read settings once it is reopened.
            self.metadata.invalidate_settings()
            raise CollectionError(step, exc) from exc
        except QueryExecutionError as exc:
            raise CollectionError(step, exc) from exc

    async def _query_database_list(self) -> list[str]:
        names: list[str] = []

        def assign(column: str, value: str) -> None:
            if column == "datname" and value:
                names.append(value)

        await query_rows(self._executor, query_database_list(), timeout=self._config.timeout, assign=assign)
        return names

    async def _collect_connections(self, mx: Snapshot) -> None:
        def assign(_column: str, value: str) -> None:
            mx["server_connections_used"] = safe_parse_int(value)

        await query_rows(
            self._executor,
            query_server_current_connections(),
            timeout=self._config.timeout,
            assign=assign,
        )
        used = mx.setdefault("server_connections_used", 0)
        max_connections = self.metadata.max_connections
        mx["server_connections_available"] = max_connections - used
        mx["server_connections_utilization"] = calc_percentage(used, max_connections)

    async def _collect_checkpoints(self, mx: Snapshot) -> None:
        def assign(column: str, value: str) -> None:
            mx[column] = safe_parse_int(value)

        await query_rows(
            self._executor,
            query_checkpoints(self.metadata.server_version),
            timeout=self._config.timeout,
            assign=assign,
        )

    async def _collect_database_stats(self, mx: Snapshot) -> None:
        database = ""
        limits: dict[str, int] = {}

        def assign(column: str, value: str) -> None:
            nonlocal database
            if column == "datname":
                database = value
            elif column == "datconnlimit":
                limits[database] = safe_parse_int(value)
            else:
                mx[database_series_id(database, column)] = safe_parse_int(value)

        await query_rows(
            self._executor,
            query_database_stats(),
            list(self.registry.names),
            timeout=self._config.timeout,
            assign=assign,
        )
        for name, limit in limits.items():
            if limit <= 0:
                limit = self.metadata.max_connections
            used = mx.get(database_series_id(name, "numbackends"), 0)
            mx[database_series_id(name, "numbackends_utilization")] = calc_percentage(used, limit)

    async def _collect_database_conflicts(self, mx: Snapshot) -> None:
        database = ""

        def assign(column: str, value: str) -> None:
            nonlocal database
            if column == "datname":
                database = value
            else:
                mx[database_series_id(database, column)] = safe_parse_int(value)

        await query_rows(
            self._executor,
            query_database_conflicts(),
            list(self.registry.names),
            timeout=self._config.timeout,
            assign=assign,
        )

    async def _collect_database_locks(self, mx: Snapshot) -> None:
        for name in self.registry.names:
            for mode in LockMode:
                mx[database_series_id(name, lock_metric(mode, True))] = 0
                mx[database_series_id(name, lock_metric(mode, False))] = 0

        row: dict[str, str] = {}

        def assign(column: str, value: str) -> None:
            row[column] = value
            if column != "locks_count":
                return
            mode = LockMode.parse(row.get("mode", ""))
            if mode is None:
                LOG.debug("Skipping unknown lock mode", extra={"mode": row.get("mode")})
                return
            granted = row.get("granted") in ("true", "t")
            mx[database_series_id(row.get("datname", ""), lock_metric(mode, granted))] = safe_parse_int(value)

        await query_rows(
            self._executor,
            query_database_locks(),
            list(self.registry.names),
            timeout=self._config.timeout,
            assign=assign,
        )


__all__ = [
    "CollectionError",
    "CollectionStep",
    "CycleState",
    "PostgresCollector",
]
